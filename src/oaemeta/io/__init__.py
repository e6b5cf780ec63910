"""Bundle import and export."""
