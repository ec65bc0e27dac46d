"""
Text-generation client, prompts and output parsing.
"""
