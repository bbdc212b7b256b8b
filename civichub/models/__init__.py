"""
Pydantic models for request/response validation.

DESIGN PRINCIPLE:
- Models should reflect data structure, not business logic
- Firestore documents stay plain dicts inside services
"""
