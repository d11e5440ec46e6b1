"""Infrastructure: database access and background scheduling."""
