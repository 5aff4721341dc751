"""Service layer — CLI-facing operations over a Repo.

INVARIANT: every public service method returns a ServiceResult.
"""
