"""Two-person collaborative checklist: propose, validate, complete, kept in sync by polling."""
