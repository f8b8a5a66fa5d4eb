"""Grounding text for the model: what we know about the caller.

``describe_customer`` is a pure function of the profile so the same caller
always yields the same text.  ``render_instructions`` fills the agent prompt
placeholders before the session hands the instructions to the model runtime.
"""

from __future__ import annotations

from datetime import datetime

from resto_agent.models.customer import CustomerProfile


def describe_customer(profile: CustomerProfile) -> str:
    """Summarize which identity fields are known and how often they called."""
    present = {
        "name": profile.name,
        "email": profile.email,
        "address": profile.address,
    }
    calls = profile.number_of_calls

    if not any(present.values()):
        if calls == 1:
            return (
                "This is the customer's very first call. "
                f"Their phone number is {profile.phone}. "
                "No previous reservation history or personal details are available yet."
            )
        return (
            f"The customer has called {calls} times before but has never made a "
            f"reservation. Their phone number is {profile.phone}. "
            "No personal details are available yet."
        )

    details = [f"Here are some details about the customer. Phone: {profile.phone}"]
    for field, value in present.items():
        if value:
            details.append(f"{field.capitalize()}: {value}")

    missing = [field for field, value in present.items() if not value]
    if missing:
        details.append(f"Missing information: {', '.join(missing)}.")

    details.append(f"The customer has called {calls} time{'' if calls == 1 else 's'}.")
    return " ".join(details)


def render_instructions(
    template: str,
    *,
    now: datetime,
    customer: CustomerProfile,
    restaurant_name: str | None = None,
) -> str:
    """Replace ``{{placeholder}}`` patterns in an instruction template.

    Unknown placeholders are left untouched.
    """
    replacements = {
        "{{now}}": now.strftime("%A %d %B %Y, %H:%M"),
        "{{callerPhoneNumber}}": customer.phone,
        "{{describeCustomerKnowledge}}": describe_customer(customer),
        "{{restaurantName}}": restaurant_name or "the restaurant",
    }
    for placeholder, value in replacements.items():
        template = template.replace(placeholder, value)
    return template
