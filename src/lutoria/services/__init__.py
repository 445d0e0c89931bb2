"""External collaborators used by the grading workflow."""
