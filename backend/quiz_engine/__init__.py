"""Quiz attempt and grading engine for the e-learning backend.

The package groups the pure grading pieces (`grading`, `scoring`,
`policy`, `timer`), the attempt state machine (`session`), the review
builder (`review`) and the persistence/HTTP plumbing that wires them to a
database and a FastAPI application. Individual modules carry their own
documentation.
"""
