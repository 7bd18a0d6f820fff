from typing import Optional, Tuple

FALLBACK_MODEL = "fallback"
FALLBACK_NOTE = "AI service temporarily unavailable. Install Ollama for full AI features."

MATH_KEYWORDS = ("math", "equation", "calculate")
WRITING_KEYWORDS = ("essay", "writing", "paper")
SCIENCE_KEYWORDS = ("science", "experiment", "hypothesis")

MATH_TEMPLATE = """I'd love to help with your math problem! Here are some general tips:

1. **Break down the problem** - Read it carefully and identify what you're solving for
2. **Show your work** - Write out each step clearly
3. **Check your answer** - Substitute back into the original equation if possible

For specific math help, try:
- Khan Academy (free online lessons)
- Photomath app (step-by-step solutions)
- Your textbook's example problems"""

MATH_CONTEXT = 'Since you\'re working on: "{context}", make sure to review related concepts in your materials.'
MATH_CLOSING = "What specific part of the math problem are you stuck on?"

WRITING_TEMPLATE = """Great! I can help you with your writing. Here's a structured approach:

**Essay Writing Steps:**
1. **Brainstorm** - List your main ideas
2. **Create an outline** - Introduction, body paragraphs, conclusion
3. **Write a strong thesis** - Your main argument in 1-2 sentences
4. **Support with evidence** - Use examples, quotes, or data
5. **Revise and edit** - Check grammar, flow, and clarity

**Quick Tips:**
- Start each paragraph with a clear topic sentence
- Use transitions between ideas
- Cite your sources properly
- Read your work aloud to catch errors"""

WRITING_CONTEXT = 'For your current task: "{context}", focus on how it relates to your assignment requirements.'
WRITING_CLOSING = "What type of essay are you working on?"

SCIENCE_TEMPLATE = """Science homework can be exciting! Here's how to approach it:

**Scientific Method:**
1. **Observation** - What did you notice?
2. **Question** - What do you want to find out?
3. **Hypothesis** - Your educated guess
4. **Experiment** - How will you test it?
5. **Analysis** - What do the results show?
6. **Conclusion** - Was your hypothesis correct?

**Study Tips:**
- Draw diagrams to visualize concepts
- Connect new info to what you already know
- Practice explaining concepts in your own words
- Use real-world examples"""

SCIENCE_CONTEXT = 'Since you\'re working on: "{context}", try to relate it to everyday examples you can observe.'
SCIENCE_CLOSING = "What science topic are you exploring?"

GENERAL_TEMPLATE = """I'm here to help with your homework! While I'm running in basic mode right now, here are some general study strategies:

**Effective Study Techniques:**
1. **Break it down** - Divide large tasks into smaller, manageable parts
2. **Active learning** - Summarize, teach others, or create flashcards
3. **Practice regularly** - A little bit each day is better than cramming
4. **Ask questions** - Don't hesitate to reach out to teachers or classmates
5. **Take breaks** - Your brain needs rest to process information

**Great Free Resources:**
- Khan Academy (math, science, history)
- Coursera (university-level courses)
- YouTube educational channels
- Your local library's online resources"""

GENERAL_CONTEXT = 'For your current task: "{context}", try breaking it into smaller steps and tackle one at a time.'
GENERAL_CLOSING = """What subject are you working on? I can provide more specific guidance!

*Note: For full AI tutoring features, ask your admin to install Ollama with the llama3.2:3b model.*"""

# Checked in order, first match wins
CATEGORIES: Tuple[Tuple[Tuple[str, ...], str, str, str], ...] = (
    (MATH_KEYWORDS, MATH_TEMPLATE, MATH_CONTEXT, MATH_CLOSING),
    (WRITING_KEYWORDS, WRITING_TEMPLATE, WRITING_CONTEXT, WRITING_CLOSING),
    (SCIENCE_KEYWORDS, SCIENCE_TEMPLATE, SCIENCE_CONTEXT, SCIENCE_CLOSING),
)


def _select_template(lower_message: str) -> Tuple[str, str, str]:
    for keywords, body, context_line, closing in CATEGORIES:
        if any(keyword in lower_message for keyword in keywords):
            return body, context_line, closing
    return GENERAL_TEMPLATE, GENERAL_CONTEXT, GENERAL_CLOSING


def generate_fallback_response(message: Optional[str], context: Optional[str] = None) -> str:
    """Build a canned markdown help answer for a homework question.

    Used when neither the hosted nor the local model answered. The message is
    matched against keyword categories (math, then writing, then science);
    anything else gets the general study-strategies answer. A non-empty
    ``context`` is quoted verbatim in one extra sentence.
    """
    lower_message = (message or "").lower()
    body, context_line, closing = _select_template(lower_message)

    paragraphs = [body]
    if context:
        # str.replace keeps braces in the context from being parsed as fields
        paragraphs.append(context_line.replace("{context}", str(context)))
    paragraphs.append(closing)

    return "\n\n".join(paragraphs)
