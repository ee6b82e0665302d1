"""Memory domains: categories that facts are extracted into and recalled by."""

from dataclasses import dataclass
from typing import Dict, List

DEFAULT_DOMAIN = "general"

_RESPONSE_FORMAT = (
    "Return a JSON array of strings. Each string should be a self-contained fact "
    "(understandable without the original conversation). Maximum 500 characters "
    "per fact. If there are no notable facts, return an empty array []."
)


@dataclass(frozen=True)
class MemoryDomain:
    """A named category of durable facts with its own extraction prompt."""

    id: str
    name: str
    description: str
    extraction_prompt: str


DOMAIN_REGISTRY: Dict[str, MemoryDomain] = {
    "tool-usage": MemoryDomain(
        id="tool-usage",
        name="Tool Usage Patterns",
        description=(
            "Command sequences, tool interaction patterns, error resolutions, "
            "build/deploy workflows"
        ),
        extraction_prompt=f"""You are a tool-usage pattern extractor. Extract durable, reusable facts about how tools, commands, and workflows are used in the conversation below. Focus on lessons learned and patterns that would be useful in future sessions.

Extract:
- Shell command sequences and pipelines that accomplished a task
- Tool interaction patterns (which tools were used together, in what order)
- The application or system being operated on
- Error messages encountered and how they were resolved
- Build, test, and deploy commands and workflows
- Package manager commands and dependency operations
- Git workflows and branching patterns

Do NOT extract:
- User preferences or communication style
- Project architecture or business requirements
- Generic knowledge any developer would know
- Greetings, filler, or conversational noise
- Task-specific transient details (e.g., "user asked to fix a typo on line 42")
- Error messages without a resolution or takeaway
- Step-by-step narration of task progress

{_RESPONSE_FORMAT}""",
    ),
    "user-preferences": MemoryDomain(
        id="user-preferences",
        name="User Preferences",
        description=(
            "Communication style, workflow conventions, repeated instructions, "
            "naming preferences"
        ),
        extraction_prompt=f"""You are a user preference extractor. Extract durable, long-term facts about the user's preferences, habits, and conventions from the conversation below. Only extract preferences that would apply across multiple sessions and tasks.

Extract:
- Communication style preferences (verbosity, tone, format)
- Workflow conventions (branching strategy, commit style, review process)
- Repeated instructions or corrections the user has given
- Naming conventions and coding style preferences
- Tool and editor preferences
- Explicit "always do X" or "never do Y" directives
- Security and privacy preferences

Do NOT extract:
- Shell commands, tool sequences, or error resolutions
- Project architecture, structure, or technical environment details
- Generic knowledge any developer would know
- Greetings, filler, or conversational noise
- Task-specific transient details (e.g., "user asked to fix a typo on line 42")
- Preferences that only apply to the current task

{_RESPONSE_FORMAT}""",
    ),
    DEFAULT_DOMAIN: MemoryDomain(
        id=DEFAULT_DOMAIN,
        name="General Knowledge",
        description="Project structure, architecture decisions, environment info, team context",
        extraction_prompt=f"""You are a general knowledge extractor. Extract durable, long-term facts about the project, environment, people, and context from the conversation below. Focus on knowledge that remains true across sessions, not ephemeral task state.

Extract:
- Project structure, architecture, and design decisions
- Technical environment info (OS, languages, frameworks, versions)
- People, relationships, and contact methods mentioned
- Account names, usernames, or identifiers for services
- Configuration details and environment variables
- API endpoints, database schemas, or service dependencies
- Decisions made and their reasoning

Do NOT extract:
- Shell commands, tool sequences, or error resolutions
- User preferences, communication style, or workflow conventions
- Generic knowledge any developer would know
- Greetings, filler, or conversational noise
- Task-specific transient details (e.g., "user asked to fix a typo on line 42")
- Ephemeral UI state or descriptions of what is currently on screen

{_RESPONSE_FORMAT}""",
    ),
}


def get_domain_ids() -> List[str]:
    return list(DOMAIN_REGISTRY.keys())


def get_domain(domain_id: str) -> MemoryDomain:
    """Look up a domain, falling back to the general domain for unknown ids."""
    return DOMAIN_REGISTRY.get(domain_id, DOMAIN_REGISTRY[DEFAULT_DOMAIN])
