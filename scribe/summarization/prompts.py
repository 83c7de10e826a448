"""Prompts sent to the summarization model."""

MEETING_SUMMARY = """
You are given the recording of a voice meeting.
Reply with a Markdown summary and nothing else, using these sections:

## Meeting Agenda
What the meeting set out to cover, inferred from how the conversation opens.

## Key Insights
Bullet points with the most important conclusions.

## Action Items
A checklist of follow-up tasks, naming who owns each one.

## Detailed Summary
One cohesive paragraph describing how the discussion unfolded.

Do not include a transcript.
""".strip()


def transcript_prompt(transcript: str) -> str:
    """Prompt for summarizing an already transcribed meeting."""
    return (
        MEETING_SUMMARY.replace("the recording of", "the transcript of")
        + f"\n\nMeeting Transcript:\n{transcript}"
    )
