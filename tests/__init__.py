"""Test suite for FormKeeper.

This package contains tests for:
- Path handling and value trees
- Event bus, plugin registry and kernel
- Rule evaluation and the validation engine
- Field registry, state manager, array fields and submit handler
- Optional plugins (focus manager, wizard, autosave)
- Integration scenarios across the Form facade
"""
