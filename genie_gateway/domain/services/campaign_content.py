"""
Campaign Content Renderer
Personalizes campaign subject and body per recipient with Jinja2.

Placeholders use the camelCase lead fields the editor offers:
{{ firstName }}, {{ lastName }}, {{ name }}, {{ email }}, {{ company }}.
Unknown placeholders render as empty strings.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel
from jinja2 import BaseLoader, TemplateError, TemplateSyntaxError
from jinja2.exceptions import SecurityError
from jinja2.sandbox import SandboxedEnvironment
import logging

logger = logging.getLogger(__name__)


class CampaignContentError(Exception):
    """Raised when campaign content is not a valid template."""
    def __init__(self, message: str, issues: Optional[List[str]] = None):
        self.message = message
        self.issues = issues or []
        super().__init__(self.message)


class RenderedContent(BaseModel):
    subject: str
    html: str


def recipient_context(recipient: Dict[str, Any]) -> Dict[str, Any]:
    """Template variables for a recipient (lead row or explicit dict)."""
    first_name = recipient.get("firstName") or recipient.get("first_name") or ""
    last_name = recipient.get("lastName") or recipient.get("last_name") or ""
    context = {
        "firstName": first_name,
        "lastName": last_name,
        "name": recipient.get("name") or f"{first_name} {last_name}".strip(),
        "email": recipient.get("email") or "",
        "company": recipient.get("company") or "",
    }
    # Any extra recipient fields are available too
    for key, value in recipient.items():
        context.setdefault(key, value)
    return context


class _CampaignSandbox(SandboxedEnvironment):
    """Sandbox that fails loudly on unsafe attribute access instead of rendering blanks."""

    def unsafe_undefined(self, obj: Any, attribute: str):
        raise SecurityError(
            f"access to attribute {attribute!r} of {obj.__class__.__name__!r} object is unsafe."
        )


def _sandbox(autoescape: bool) -> SandboxedEnvironment:
    env = _CampaignSandbox(loader=BaseLoader(), autoescape=autoescape)
    # Campaign content only needs recipient fields
    env.globals.clear()
    return env


SAMPLE_RECIPIENT = {
    "email": "sample@example.com",
    "firstName": "Sample",
    "lastName": "Recipient",
    "company": "Example Inc",
}


class CampaignContentRenderer:
    """
    Compiles a campaign's templates once and renders them per recipient.

    Tenant-written templates run in a Jinja2 sandbox. The HTML body is
    autoescaped so recipient values cannot inject markup; the subject is
    plain text and is rendered as-is.
    """

    MAX_SUBJECT_LENGTH = 200

    def __init__(self):
        self.subject_env = _sandbox(autoescape=False)
        self.html_env = _sandbox(autoescape=True)

    def validate(self, subject: str, content: str) -> None:
        issues = []
        if not subject or not subject.strip():
            issues.append("Subject is required")
        elif len(subject) > self.MAX_SUBJECT_LENGTH:
            issues.append(f"Subject exceeds {self.MAX_SUBJECT_LENGTH} characters")
        if not content or not content.strip():
            issues.append("Email content is required")

        context = recipient_context(SAMPLE_RECIPIENT)
        for label, env, source in (("subject", self.subject_env, subject),
                                   ("content", self.html_env, content)):
            try:
                env.from_string(source or "").render(**context)
            except TemplateSyntaxError as e:
                issues.append(f"Invalid placeholder in {label}: {e.message}")
            except SecurityError as e:
                issues.append(f"Unsafe expression in {label}: {e.message}")
            except TemplateError as e:
                issues.append(f"Placeholder in {label} cannot be rendered: {e.message}")

        if issues:
            raise CampaignContentError("Campaign content validation failed", issues)

    def render(self, subject: str, content: str, recipient: Dict[str, Any]) -> RenderedContent:
        context = recipient_context(recipient)
        try:
            return RenderedContent(
                subject=self.subject_env.from_string(subject).render(**context),
                html=self.html_env.from_string(content).render(**context),
            )
        except SecurityError as e:
            logger.warning(f"Blocked unsafe campaign template: {e}")
            raise CampaignContentError(f"Unsafe campaign template: {e.message}")
        except TemplateError as e:
            logger.error(f"Campaign template error: {e}")
            raise CampaignContentError(f"Invalid campaign template: {e.message}")


_renderer: Optional[CampaignContentRenderer] = None


def get_campaign_content_renderer() -> CampaignContentRenderer:
    global _renderer
    if _renderer is None:
        _renderer = CampaignContentRenderer()
    return _renderer
