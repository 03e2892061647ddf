"""
Prompt Manager for extraction requests

Prompts live in YAML files so wording and few-shot examples can be edited
and versioned without code changes.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from jinja2 import Template

logger = logging.getLogger(__name__)

DEFAULT_PROMPTS_DIR = Path(__file__).parent.parent.parent / "prompts"


class PromptManager:
    """Manages prompts loaded from external files"""

    def __init__(self, prompts_dir: Optional[str] = None):
        """
        Initialize PromptManager

        Args:
            prompts_dir: Directory containing prompt files. If None, uses the packaged prompts.
        """
        self.prompts_dir = Path(prompts_dir) if prompts_dir is not None else DEFAULT_PROMPTS_DIR
        self._prompts_cache: Dict[str, Dict[str, Any]] = {}

    def load_prompt(self, prompt_name: str, use_cache: bool = True) -> Dict[str, Any]:
        """
        Load a prompt from YAML file

        Args:
            prompt_name: Name of the prompt (without .yaml extension)
            use_cache: Whether to use cached prompts

        Returns:
            Dictionary with 'system_prompt', 'user_prompt_template' and optional 'examples'
        """
        if use_cache and prompt_name in self._prompts_cache:
            return self._prompts_cache[prompt_name]

        prompt_file = self.prompts_dir / f"{prompt_name}.yaml"

        if not prompt_file.exists():
            logger.warning(f"Prompt file not found: {prompt_file}")
            return {
                'system_prompt': '',
                'user_prompt_template': '{{ content }}',
                'examples': [],
            }

        try:
            with open(prompt_file, 'r', encoding='utf-8') as f:
                prompt_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Failed to load prompt {prompt_name}: {e}")
            raise

        if use_cache:
            self._prompts_cache[prompt_name] = prompt_data
        return prompt_data

    def get_system_prompt(self, prompt_name: str) -> str:
        """Get system prompt for a given prompt name"""
        return self.load_prompt(prompt_name).get('system_prompt', '')

    def get_user_prompt(self, prompt_name: str, **kwargs) -> str:
        """
        Get user prompt with template variables filled in

        Args:
            prompt_name: Name of the prompt
            **kwargs: Variables to fill in the template

        Returns:
            Rendered user prompt string
        """
        template_str = self.load_prompt(prompt_name).get('user_prompt_template', '{{ content }}')
        return Template(template_str).render(**kwargs)

    def get_examples(self, prompt_name: str) -> List[Dict[str, str]]:
        """Few-shot examples as role-tagged messages, in file order"""
        messages = []
        for example in self.load_prompt(prompt_name).get('examples') or []:
            if example.get('user'):
                messages.append({'role': 'user', 'content': example['user'].strip()})
            if example.get('assistant'):
                messages.append({'role': 'assistant', 'content': example['assistant'].strip()})
        return messages

    def clear_cache(self):
        """Clear the prompts cache"""
        self._prompts_cache.clear()

    def list_prompts(self) -> list:
        """List all available prompt files"""
        if not self.prompts_dir.exists():
            return []
        return sorted(f.stem for f in self.prompts_dir.glob("*.yaml"))


# Global prompt manager instance
_default_prompt_manager: Optional[PromptManager] = None


def get_prompt_manager(prompts_dir: Optional[str] = None) -> PromptManager:
    """Get the default prompt manager instance"""
    global _default_prompt_manager

    if prompts_dir is not None:
        return PromptManager(prompts_dir)
    if _default_prompt_manager is None:
        _default_prompt_manager = PromptManager()
    return _default_prompt_manager
