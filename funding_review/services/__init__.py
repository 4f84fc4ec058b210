"""Domain services for matching, assignment, evaluation and decisions."""
