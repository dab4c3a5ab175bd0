"""solved-sync application package."""
