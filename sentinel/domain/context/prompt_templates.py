from pathlib import Path
from typing import Optional

BASE_DIR = Path(__file__).resolve().parents[2] / "prompts"

SYSTEM_TEMPLATE_FILE = "server_assistant.txt"
REMINDER_FILE = "directive_reminder.txt"


def load_prompt(name: str, base_dir: Path = BASE_DIR) -> str:
    return (base_dir / name).read_text(encoding="utf-8")


class PromptTemplates:
    """System prompt bound to a target host, plus the directive reminder suffix"""

    def __init__(self, system_template: Optional[str] = None, reminder: Optional[str] = None):
        self.system_template = system_template if system_template is not None else load_prompt(SYSTEM_TEMPLATE_FILE)
        self.reminder = reminder if reminder is not None else load_prompt(REMINDER_FILE)

    def system_prompt(self, target: str) -> str:
        return self.system_template.replace("{target}", target)
