from __future__ import annotations

from typing import Dict

# Canned replies used when no completion backend is configured or it fails.
# Checked in insertion order; the first subject whose keyword appears wins.
_LOCAL_REPLIES: Dict[str, dict] = {
    "math": {
        "keywords": ("math", "algebra", "geometry"),
        "reply": (
            "Great! Math is such an important subject! What specific math topic are you working on? "
            "I can help with algebra, geometry, fractions, or any other math concepts!"
        ),
    },
    "science": {
        "keywords": ("science", "biology", "chemistry", "physics"),
        "reply": (
            "Science is fascinating! Are you studying biology, chemistry, physics, or earth science? "
            "I'd love to help you understand any scientific concepts!"
        ),
    },
    "history": {
        "keywords": ("history", "historical"),
        "reply": (
            "History helps us understand our world! What time period or historical events are you studying? "
            "I can help with world history, American history, or any specific historical topics!"
        ),
    },
    "literature": {
        "keywords": ("literature", "reading", "book"),
        "reply": (
            "Reading and literature are wonderful! Are you working on a specific book, poem, or writing "
            "assignment? I can help with comprehension, analysis, or writing techniques!"
        ),
    },
    "study_tips": {
        "keywords": ("study", "learn", "homework"),
        "reply": (
            "Here are some great study tips! 1) Take breaks every 30 minutes, 2) Make flashcards for key "
            "concepts, 3) Teach someone else what you learned, 4) Practice problems regularly. "
            "What subject do you need help studying?"
        ),
    },
    "encouragement": {
        "keywords": ("difficult", "hard", "confused"),
        "reply": (
            "Don't worry! Learning can be challenging, and that's totally normal! Every expert was once a "
            "beginner. Let's break down what you're finding difficult into smaller, easier steps. "
            "What specific part is confusing you?"
        ),
    },
}

DEFAULT_REPLY = (
    "That's an interesting question! Let me help you learn about that. Could you tell me more about "
    "what specific aspect you'd like to understand better? I'm here to make learning fun and easy!"
)


def local_study_reply(message: str) -> str:
    """Pick a canned, encouraging reply by looking for subject keywords in the message."""
    text = (message or "").lower()
    for entry in _LOCAL_REPLIES.values():
        if any(keyword in text for keyword in entry["keywords"]):
            return entry["reply"]
    return DEFAULT_REPLY


def build_greeting(student_name: str) -> str:
    return (
        f"Hi {student_name}! I'm your study buddy! Ask me about math, science, history, literature, "
        "or any other subject you're learning. How can I help you study today?"
    )


def build_system_prompt(student_name: str) -> str:
    """
    System instruction for the completion backend.

    Biases the model toward safe, on-topic and encouraging answers for a
    school-age learner.
    """

    parts = [
        "You are Study Buddy, a friendly and patient tutor for school students.",
        f"You are talking with a student named {student_name}.",
        "Only help with schoolwork and learning: math, science, history, literature, languages "
        "and study skills.",
        "Explain concepts step by step in simple language, prefer hints before final answers, "
        "and encourage the student's effort.",
        "Never discuss violence, drugs, adult content, dating, gambling, shopping or social media. "
        "If asked about anything off-topic, kindly steer the conversation back to studying.",
        "Keep answers short, safe and age-appropriate.",
    ]
    return "\n\n".join(parts)
