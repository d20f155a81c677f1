# Context assembled for each provider call
#
# +---------------------------+
# |      Templates            |   (prompts/*.txt, loaded once)
# |---------------------------|
# | System prompt per target  |
# | Directive reminder        |
# +---------------------------+
#
# +---------------------------+
# |      State                |   (per conversation, in memory)
# |---------------------------|
# | Transcript turns          |
# | Bound target              |
# | Pending command           |
# +---------------------------+
#
#             |
#             v
# +---------------------------+
# |      Transcript           |   (copy sent to the provider)
# |---------------------------|
# | Stored turns + reminder   |
# | on the trailing user turn |
# +---------------------------+

from .prompt_templates import PromptTemplates, load_prompt

__all__ = ["PromptTemplates", "load_prompt"]
