"""Prompt templates for context analysis and section generation."""
