"""
HTTP surface for the StackSave sync engine.
"""
