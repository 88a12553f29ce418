"""
Sample Locator Test Suite

Structure:
- unit/: Unit tests for individual components (synthetic feature sets, no real images
  except where OpenCV collaborators are under test)
- integration/: End-to-end runs on procedurally generated scenes
- conftest.py: shared synthetic feature builders and collaborator doubles
"""
