"""
Composer index document model and transformation engine.
"""
