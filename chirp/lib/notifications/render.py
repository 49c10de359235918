from __future__ import annotations

from typing import List, Optional

from chirp.lib.digest import DigestSummary

from .models import EmailMessage, SpecialSighting


def daily_summary_message(summary: DigestSummary, sender: str) -> EmailMessage:
    subject = f"Your Daily Bird Summary - {summary.new_count} New Sightings!"
    date_text = summary.window_start.strftime("%A, %B %d, %Y")
    lines: List[str] = [f"ChirpChirp Daily Briefing - {date_text}", ""]

    if summary.is_empty:
        lines.append("No new photos were captured yesterday.")
        return EmailMessage(sender=sender, subject=subject, text="\n".join(lines))

    lines.extend(
        [
            f"New photos: {summary.new_count}",
            f"Species logged: {summary.species_count}",
            f"Most popular: {summary.top_species or 'n/a'}",
            "",
            "Timeline",
        ]
    )
    for entry in summary.timeline:
        lines.append(f"- {entry.time} {entry.species} ({entry.image_url})")
    lines.extend(["", "Gallery"])
    for entry in summary.gallery:
        lines.append(f"- {entry.species}: {entry.image_url}")
    return EmailMessage(sender=sender, subject=subject, text="\n".join(lines))


def special_sighting_message(sighting: SpecialSighting, sender: str) -> EmailMessage:
    confidence = sighting.confidence
    confidence_text = f"{confidence:.0%}" if confidence is not None else "n/a"
    lines = [
        f"A new species was spotted at your feeder: {sighting.species}",
        f"Confidence: {confidence_text}",
    ]
    if sighting.image_url:
        lines.append(f"Photo: {sighting.image_url}")
    return EmailMessage(
        sender=sender,
        subject=f"New Species Alert: {sighting.species} spotted!",
        text="\n".join(lines),
    )


def welcome_message(name: Optional[str], sender: str) -> EmailMessage:
    greeting = f"Hi {name}," if name else "Hi there,"
    lines = [
        greeting,
        "",
        "Thanks for subscribing to ChirpChirp. You'll receive a daily summary of",
        "your feeder activity and alerts when a new species shows up.",
    ]
    return EmailMessage(sender=sender, subject="Welcome to ChirpChirp!", text="\n".join(lines))
