"""
Prompt templates for every text-generation call in the interview system.
Each prompt is designed to:
1. Pin the output format (bare JSON or plain text)
2. Keep the model in the interviewer/coach role
3. Stay deterministic for a given input
"""
import json
from typing import Any, Dict, List


class Prompts:
    """Collection of all prompts."""

    # ============================================================
    # QUESTION GENERATION
    # ============================================================

    @staticmethod
    def question_set(
        title: str,
        interview_type: str,
        skills: List[str],
        experience_level: str,
        duration_minutes: int,
        count: int,
    ) -> str:
        """Prompt for the fixed-size question list."""
        return f"""You are an expert REAL technical interviewer.

Generate EXACTLY {count} interview questions for:
- Job Title: {title}
- Interview Type: {interview_type}
- Required Skills: {", ".join(skills)}
- Experience Level: {experience_level}
- Interview Duration: {duration_minutes} minutes

STRICT RULES:
- Questions MUST be practical, technical, and used in REAL interviews.
- Difficulty MUST match experience level.
- Cover a mix of: conceptual, coding/logic, debugging, scenario, system-thinking.
- NO jokes. NO story questions. NO creative nonsense.
- Return ONLY a JSON array of strings. No markdown.

Example output:
[
  "Explain how a HashMap works internally.",
  "Design a URL shortener system."
]"""

    @staticmethod
    def more_questions(
        title: str,
        skills: List[str],
        experience_level: str,
        existing: List[str],
        missing: int,
    ) -> str:
        """Prompt used when the first call returned too few questions."""
        existing_block = "\n".join(f"- {q}" for q in existing) or "- (none)"
        return f"""You are an expert technical interviewer for a {experience_level} {title} role.
Required skills: {", ".join(skills)}

These questions are already in the set:
{existing_block}

Generate EXACTLY {missing} NEW questions that do not repeat the ones above.
Return ONLY a JSON array of strings. No markdown."""

    # ============================================================
    # CONVERSATION TURN
    # ============================================================

    @staticmethod
    def turn_reply(
        transcript_text: str,
        question_index: int,
        question_count: int,
        current_question: str,
        utterance: str,
    ) -> str:
        """Coaching + continuation prompt for one spoken exchange."""
        is_last = question_index >= question_count - 1
        return f"""You are an expert interview interviewer and coach.
Context: This is a spoken mock interview. You will:
1) Give a short spoken-style feedback to the candidate's latest answer (1-3 sentences).
2) Then produce the next interview question (concise) OR set nextQuestion to null if interview is finished.
3) If this was the last question, set endInterview true and give a brief closing comment.
Return ONLY a JSON object with keys: {{"aiReply":"...", "nextQuestion": "..." or null, "endInterview": true/false}}.
Do not include extra commentary outside the JSON.

Transcript:
{transcript_text or "(empty)"}

Latest question index: {question_index} of {question_count} ({"last question" if is_last else "more to come"})
Latest question: {current_question}
Latest user utterance: {utterance}

Return the JSON now."""

    # ============================================================
    # SCORING / REPORT
    # ============================================================

    @staticmethod
    def batch_scoring(pairs: List[Dict[str, str]]) -> str:
        """Prompt that scores every answer in one call."""
        return f"""You are an expert technical interviewer.
Evaluate ALL answers at once. An empty answer scores 0.

Return ONLY JSON:
{{
  "results":[{{"score":0-100,"explanation":"..."}}],
  "overallScore":0-100
}}

Return exactly one result per question, in the same order.
No markdown. No text.

Here is the list:
{json.dumps(pairs, indent=2)}"""

    @staticmethod
    def detailed_report(per_question: List[Dict[str, Any]], overall_score: int, sections: List[str]) -> str:
        """Prompt for the plain-text narrative report."""
        outline = "\n".join(f"{i}. {name}" for i, name in enumerate(sections, start=1))
        return f"""You are an expert technical hiring manager.

Using the following interview data:
Questions & Answers:
{json.dumps(per_question, indent=2)}

Overall Score: {overall_score}

Generate a PROFESSIONAL final interview report in plain text ONLY.

Include these sections clearly:

{outline}

Do NOT return JSON.
Do NOT add markdown formatting (no **, no ##).
Return ONLY clean readable paragraphs."""

    # ============================================================
    # ASK DOUBT
    # ============================================================

    @staticmethod
    def answer_doubt(question: str, doubt: str) -> str:
        """Prompt for a clarifying question asked mid-interview."""
        return f"""You are a helpful interviewer in a mock interview.
The candidate is working on this interview question:
"{question}"

They asked this clarifying question:
"{doubt}"

Clarify what the question is asking in 2-3 spoken sentences.
Do NOT give away the answer. Plain text only, no markdown."""


# ============================================================
# FALLBACK QUESTIONS (used to fill a short generated set)
# ============================================================

FALLBACK_QUESTIONS = {
    "technical": [
        "Walk me through how you would debug a production issue that only occurs under load.",
        "Explain the trade-offs between SQL and NoSQL databases for a new service.",
        "How would you design an API that needs to stay backward compatible?",
        "Describe how you would find and fix a memory leak in a long-running service.",
        "What testing strategy would you use for a critical payment flow?",
        "How do you decide when to add a cache, and how do you keep it consistent?",
        "Explain how you would break a monolith into smaller services.",
    ],
    "behavioral": [
        "Tell me about a time you faced a significant obstacle at work and how you overcame it.",
        "Describe a situation where you had to collaborate with a difficult team member.",
        "How do you handle receiving critical feedback on your work?",
        "Tell me about a project you are proud of and your specific contribution.",
        "Describe a time you had to learn a new technology quickly.",
        "Tell me about a decision you made with incomplete information.",
        "Describe a time you disagreed with your manager and how it was resolved.",
    ],
    "general": [
        "What aspects of your previous experience are most relevant to this role?",
        "Walk me through a project that showcases your skills.",
        "How do you prioritize multiple high-priority tasks with competing deadlines?",
        "If you found a critical bug right before launch, what would you do?",
        "How do you keep your technical skills up to date?",
        "Describe how you would mentor a junior engineer struggling with a task.",
        "What would you focus on in your first month in this role?",
    ],
}


def fallback_questions(interview_type: str, skills: List[str], count: int = 0) -> List[str]:
    """
    Fallback bank for an interview type, skill-specific questions first.

    When the bank is smaller than count it is repeated as numbered
    follow-ups so that at least count distinct questions come back.
    """
    key = (interview_type or "").strip().lower()
    bank = FALLBACK_QUESTIONS.get(key, FALLBACK_QUESTIONS["general"])
    skill_questions = [
        f"What is the most challenging problem you have solved using {skill}?"
        for skill in skills
    ]
    seen = set()
    base = []
    for question in skill_questions + bank:
        if question.lower() not in seen:
            seen.add(question.lower())
            base.append(question)
    questions = list(base)
    round_number = 2
    while len(questions) < count:
        questions.extend(f"Follow-up {round_number}: {question}" for question in base)
        round_number += 1
    return questions
