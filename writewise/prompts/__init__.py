"""Prompt templates and the coach prompt builder."""
from writewise.prompts.builder import PromptContext, build_prompt, build_prompt_from_session
from writewise.prompts.templates import PromptTemplate
