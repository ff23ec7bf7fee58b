"""Validate agents config and environment: load YAML, check the summarizer agent, print summary table."""

from rich.table import Table

from inbox_digest.agents.registry import get_agent_config, get_all_config
from inbox_digest.config import (
    DATABASE_URL,
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    OPENAI_API_KEY,
    SUMMARIZER_AGENT_ID,
)
from inbox_digest.notifications import SmtpEmailChannel, TwilioWhatsAppChannel

from .shared import console, logger


def validate_config() -> None:
    """Load config/agents.yaml, check the summarizer agent exists, report which integrations are configured."""
    log = logger.bind(command="validate-config")
    log.info("validate_config.start")

    try:
        config = get_all_config()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Config error: {e}[/red]")
        log.error("validate_config.fail", error=str(e))
        raise SystemExit(1) from e

    agents = config.get("agents") or {}
    if SUMMARIZER_AGENT_ID not in agents:
        console.print(f"[red]Summarizer agent {SUMMARIZER_AGENT_ID!r} not defined in agents config[/red]")
        log.error("validate_config.missing_summarizer", agent_id=SUMMARIZER_AGENT_ID)
        raise SystemExit(1)

    table = Table(title="Agents config")
    table.add_column("Agent ID", style="cyan")
    table.add_column("Model", style="green")
    table.add_column("Prompt length", justify="right")
    table.add_column("Has template", justify="center")
    for agent_id in sorted(agents):
        merged = get_agent_config(agent_id)
        prompt = merged.get("system_prompt") or ""
        has_tpl = "yes" if (merged.get("user_prompt_template") or "").strip() else "no"
        table.add_row(agent_id, str(merged.get("model", "(default)")), str(len(prompt)), has_tpl)
    console.print(table)

    checks = Table(title="Integrations")
    checks.add_column("Integration", style="cyan")
    checks.add_column("Configured", justify="center")
    rows = [
        ("Database", bool(DATABASE_URL)),
        ("OpenAI", bool(OPENAI_API_KEY)),
        ("Google OAuth", bool(GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET)),
        ("SMTP email", SmtpEmailChannel().configured),
        ("Twilio WhatsApp", TwilioWhatsAppChannel().configured),
    ]
    for name, ok in rows:
        checks.add_row(name, "[green]yes[/green]" if ok else "[yellow]no[/yellow]")
    console.print(checks)
    console.print(f"[green]Config valid. {len(agents)} agents.[/green]")
    log.info("validate_config.ok", agents=len(agents))
