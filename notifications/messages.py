"""Bodies of the transactional emails."""
from typing import List

from matchmaking.models import Attendee, PublicAttendee

SIGNATURE = 'Sips and Sparks'

FOLLOW_US = (
    "Follow us on <a href='https://www.facebook.com/sipsandsparks'>Facebook</a>, "
    "<a href='https://instagram.com/sipsandsparks'>Instagram</a>, and "
    "<a href='https://www.eventbrite.com/o/sips-and-sparks-73343957833'>Eventbrite</a> "
    "to stay up to date on all future speed dating events and receive exclusive promo codes!<br />"
)

SPREAD_THE_WORD = (
    "We are a new organization so please help us spread the word by telling all of your "
    "single friends and family members about our events!<br />"
)

ASK_FOR_REVIEW = (
    "We are a new organization so please help us spread the word by telling all of your "
    "single friends and family members about our events and leaving us a review on "
    "<a href='https://www.facebook.com/sipsandsparks'>Facebook</a>!<br />"
    "<br />Reviews help people feel more comfortable about the speed dating process, "
    "thereby increasing the number of new participants at future events, and leading to "
    "more potential matches! We're also offering 20% off any future event as a thank you "
    "for taking the time to write us a review.<br />"
)

MATCHES_CLOSING = (
    "<br />" + ASK_FOR_REVIEW +
    "<br />Best of luck exploring your new connections!<br />"
    f"<br />The {SIGNATURE} Team<br /><br />"
    "<br />P.S. Please email us your love story if you end up finding your person at one "
    "of our events! We can't wait to hear from you!"
)

MATCHES_AND_REVISITS_NOTE = (
    "<br />Keep in mind that the individuals that you did not select on your match sheet "
    "will not be receiving your contact information, so if you do decide to explore those "
    "connections further you will have to be the one to reach out to them.<br />"
    "<br />" + FOLLOW_US
)

MATCHES_REVISIT_INTRO = (
    "<br />You also received interest from the following attendees who you may want to "
    "revisit a potential connection with:<br />"
)

ONLY_REVISITS_INTRO = (
    "Unfortunately you did not have any mutual matches this time around, but we'll be "
    "hosting more speed dating events in the future with tons of different people and "
    "possibilities!<br />"
    "<br />However, you did receive interest from the following attendees who you may "
    "want to revisit a potential connection with:<br />"
)

ONLY_REVISITS_CLOSING = (
    "<br />Keep in mind that these individuals will not be receiving your contact "
    "information since you did not select them on your match sheet, so if you do decide "
    "to explore these connections further you will have to be the one to reach out to "
    "them.<br />"
    "<br />" + FOLLOW_US +
    "<br />" + ASK_FOR_REVIEW +
    "<br />Hope to see you again soon!<br />"
    f"<br />{SIGNATURE}"
)

NO_INTERESTS_CLOSING = (
    "We are sorry to hear that you didn't find that special spark you were looking for, "
    "but the good news is that we'll be hosting many more speed dating events in the "
    "future with tons of different people and possibilities!<br />"
    "<br />" + FOLLOW_US +
    "<br />" + SPREAD_THE_WORD +
    "<br />Hope to see you again soon!<br />"
    f"<br />{SIGNATURE}"
)

NO_MATCHES_CLOSING = (
    "Unfortunately you did not have any mutual matches this time around, but we'll be "
    "hosting many more speed dating events in the future with tons of different people "
    "and possibilities!<br />"
    "<br />" + FOLLOW_US +
    "<br />" + SPREAD_THE_WORD +
    "<br />Hope to see you again soon!<br />"
    f"<br />{SIGNATURE}"
)


def _contact_line(attendee: Attendee) -> str:
    line = f"{attendee.id} {attendee.first_name} {attendee.last_name}, {attendee.email}"
    if attendee.cell_phone:
        line += f", {attendee.cell_phone}"
    return line + "<br />"


def _is_blank(value) -> bool:
    return not value or not value.strip()


def confirmation_subject() -> str:
    return 'Confirmation of Your Match Form Submission'


def confirmation_text(attendee: Attendee, notes: str, interest_people: List[PublicAttendee]) -> str:
    """Plain-text copy of a match form submission."""
    text = (
        f"Dear {attendee.first_name},\n\nThank you for attending our event. We have "
        "received your submission. Below is a copy of the information you provided:"
    )
    if interest_people:
        text += "\n\nWho would you like to see again after today?:"
        for person in interest_people:
            text += f"\n- {person.id} {person.name}"
    if not _is_blank(notes):
        text += f"\n\nNotes:\n{notes}"
    text += (
        "\n\nThank you once again for participating. You can expect your match results "
        f"via email within 24 hours.\n\nWith Love,\n{SIGNATURE}"
    )
    return text


def reminder_subject() -> str:
    return 'Last Chance to Submit Your Match Form'


def reminder_html(first_name: str, match_form_url: str) -> str:
    return (
        f"Dear {first_name},<br /><br />Thank you for attending our event! We noticed that "
        "we haven't received your match form submission yet. If this was an oversight, "
        "please finalize your choices and submit your match form "
        f"<a href='{match_form_url}'>here</a>.<br /><br />"
        "If you did not feel you found a meaningful connection this time around, don't "
        "worry, we'll be hosting many more speed dating events in the future with tons of "
        "different people and possibilities!<br /><br />"
        + FOLLOW_US +
        f"<br />With Love,<br />{SIGNATURE} Team"
    )


def match_results_subject(event_label: str) -> str:
    return f"Sips & Sparks Matches - {event_label}"


def match_results_html(
    attendee: Attendee,
    matches: List[Attendee],
    shared_revisits: List[Attendee],
    withheld_revisits: int
) -> str:
    """
    Result email listing mutual matches and shared revisits.

    Args:
        attendee: Recipient
        matches: Mutual matches of the recipient
        shared_revisits: Revisits whose contact may be shared
        withheld_revisits: Number of revisits whose contact is withheld
    """
    html = (
        f"Hi {attendee.first_name},<br /><br />Thank you so much for attending our event! "
        "We hope you had a great time!<br /><br />"
    )

    if matches:
        html += "Your mutual matches and their contact information are as follows:<br />"
        html += ''.join(_contact_line(match) for match in matches)

    if shared_revisits:
        html += MATCHES_REVISIT_INTRO if matches else ONLY_REVISITS_INTRO
        html += ''.join(_contact_line(revisit) for revisit in shared_revisits)

    if matches:
        if shared_revisits:
            html += MATCHES_AND_REVISITS_NOTE
        html += MATCHES_CLOSING
    elif shared_revisits:
        html += ONLY_REVISITS_CLOSING
    elif not attendee.interests:
        html += NO_INTERESTS_CLOSING
    else:
        html += NO_MATCHES_CLOSING

    if not matches and withheld_revisits > 0:
        html += (
            f"\n<br />P.S. You also received interest from {withheld_revisits} people who "
            "opted to not share their contact info with non-mutual matches.\n"
        )

    return html


def feedback_subject(event_label: str) -> str:
    return f"Event Feedback - {event_label}"


def feedback_html(attendees: List[Attendee]) -> str:
    """Summary of the free-form answers of every attendee."""
    sections = [
        ('Feedback', 'feedback'),
        ('Where did you hear about us?', 'referral_info'),
        ('Do you have any website feedback?', 'website_feedback'),
    ]
    parts = []
    for title, field_name in sections:
        part = f"<u>{title}</u>"
        for att in attendees:
            answer = getattr(att, field_name)
            if not _is_blank(answer):
                part += f"<br />{att.first_name} {att.last_name}: {answer}"
        parts.append(part)
    return '<br /><br />'.join(parts)


def contact_subject(name: str) -> str:
    return f"Contact Query - {name}"


def contact_text(name: str, email: str, message: str) -> str:
    return f"Message from: {name}\nEmail: {email}\n\n{message}"
