"""
Services layer - Business logic goes here.

DESIGN PRINCIPLE:
- Services contain business logic, NOT routes
- Decision engines (duplicate resolution, streak scoring) are pure and
  never touch Firestore themselves
- Store-bound services receive their Firestore client, they do not reach
  for globals when one is supplied
"""
