from typing import Dict, Any, Optional
from pydantic import BaseModel, ConfigDict, Field


class ProviderDescriptor(BaseModel):
    """Connection settings for one backend kind; replaced wholesale, never mutated"""
    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Backend kind, e.g. openai")
    endpoint: str = Field(description="Base URL of the backend API")
    model: str = Field(description="Model identifier sent with each request")
    credential: str = Field(default="", repr=False, description="API key, empty when not needed")

    def to_settings(self) -> Dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "model": self.model,
            "credential": self.credential
        }

    @classmethod
    def from_settings(cls, name: str, settings: Dict[str, Any], fallback: "ProviderDescriptor") -> "ProviderDescriptor":
        """Build from stored settings, taking missing keys from fallback"""
        return cls(
            name=name,
            endpoint=settings.get("endpoint") or fallback.endpoint,
            model=settings.get("model") or fallback.model,
            credential=settings.get("credential", fallback.credential) or ""
        )


DEFAULT_PROVIDER = "ollama"

DEFAULT_DESCRIPTORS: Dict[str, ProviderDescriptor] = {
    "openai": ProviderDescriptor(
        name="openai",
        endpoint="https://api.openai.com/v1",
        model="gpt-4o"
    ),
    "gemini": ProviderDescriptor(
        name="gemini",
        endpoint="https://generativelanguage.googleapis.com/v1beta/models",
        model="gemini-pro"
    ),
    "ollama": ProviderDescriptor(
        name="ollama",
        endpoint="http://localhost:11434/api",
        model="llama3"
    ),
}


class SwitchResult(BaseModel):
    """Outcome of a provider switch or settings update"""
    provider: str
    description: str
    persisted: bool = True
    warning: Optional[str] = None

    @property
    def message(self) -> str:
        text = f"AI provider set to {self.description}"
        if self.warning:
            text += f"\nWarning: {self.warning}"
        return text
