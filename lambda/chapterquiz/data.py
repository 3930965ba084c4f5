"""
English language data and prompts for the Chapter Quiz Alexa Skill.

This module contains all text strings used by the skill, including
welcome messages, question framing, feedback, help text and session
state names.
"""

# Skill metadata
SKILL_TITLE = "Debate Guide Chapter Quiz"

# ============================================================================
# Welcome and Launch Messages
# ============================================================================

WELCOME_MESSAGE_FIRST_TIME = (
    "Welcome to the Debate Guide chapter quiz! "
    "Each chapter has a short quiz to check what you learned. "
    "Say, for example, 'quiz me on chapter one' to begin."
)

WELCOME_MESSAGE_RETURNING = (
    "Welcome back! You have completed {completed} chapter quizzes so far. "
    "Which chapter would you like to practice?"
)

WELCOME_REVIEW_DUE = "Chapter {chapter} is due for review. "

WELCOME_REVIEWS_DUE = "You have {count} chapters due for review, starting with chapter {chapter}. "

WELCOME_SIGNED_IN = "Good to hear from you again. Your progress is saved to your account. "

# ============================================================================
# Quiz Flow Messages
# ============================================================================

START_QUIZ_MESSAGE = "Here is the quiz for chapter {chapter}. It has {count} questions. "

QUIZ_NOT_AVAILABLE = "Sorry, there is no quiz for chapter {chapter} yet. "

QUIZZES_AVAILABLE = "Quizzes are ready for chapter {chapters}. Which one would you like?"

NO_QUIZZES_AVAILABLE = "There are no chapter quizzes ready yet. Please come back later."

ASK_CHAPTER = "Which chapter would you like to be quizzed on? Chapters one to twenty are available."

INVALID_CHAPTER = "I only know chapters one to twenty. Which chapter would you like?"

QUESTION_NUMBER = "Question {number} of {total}. "

SCENARIO_INTRO = "Consider this scenario. {scenario} "

OPTION_LINE = "{number}: {option}. "

TRUE_FALSE_PROMPT = "True or false? "

MATCHING_LEFT_INTRO = "Match each of these: "

MATCHING_RIGHT_INTRO = "with one of these: "

MATCHING_INSTRUCTIONS = "Say the numbers from the second list in the order of the first list. "

ORDERING_INTRO = "Put these in the right order: "

ORDERING_INSTRUCTIONS = "Say the item numbers in the correct order. "

FILL_BLANK_PROMPT = "Fill in the blank. "

REPROMPT_QUIZ = "What is your answer?"

REPROMPT_CONTINUE = "Say 'next' to continue."

REPEAT_QUESTION = "Once more: {question}"

# ============================================================================
# Answer Feedback
# ============================================================================

CORRECT_ANSWER_TEMPLATES = [
    "That's right!",
    "Correct!",
    "Well done, that's correct.",
    "Exactly right.",
]

WRONG_ANSWER_TEMPLATES = [
    "Not quite.",
    "That's not correct.",
    "Sorry, that's not it.",
]

CORRECT_OPTION = "The correct answer is number {number}: {option}. "

CORRECT_TRUE_FALSE = "The statement is {value}. "

ANSWER_RECORDED = "Got it. "

CONTINUE_PROMPT = "Say 'next' to continue."

CONTINUE_PROMPT_LAST = "Say 'next' to see your results."

# ============================================================================
# Hints
# ============================================================================

HINT_MESSAGE = "Here is a hint: {hint} "

HINT_PENALTY_NOTE = "Remember, each hint costs a few points from your adjusted score. "

NO_HINTS_LEFT = "There are no more hints for this question. "

# ============================================================================
# Navigation
# ============================================================================

ALREADY_FIRST_QUESTION = "This is already the first question. "

PREVIOUS_QUESTION = "Going back. "

FEEDBACK_SHOWING = "Let's move on first. Say 'next' to continue."

ANSWER_FIRST = "Please answer this question first. "

NO_QUIZ_RUNNING = "There is no quiz running right now. Say 'quiz me on chapter one' to start."

# ============================================================================
# Quiz End Messages
# ============================================================================

QUIZ_END_SCORE = "You got {correct} out of {total}, that's {percentage} percent. "

QUIZ_END_ADJUSTED = "With {hints} hints used, your adjusted score is {adjusted} percent. "

QUIZ_END_PASSED = "You passed chapter {chapter}! "

QUIZ_END_FAILED = "You need {passing} percent to pass. Say 'try again' to retry the chapter. "

QUIZ_END_NEXT_REVIEW = "I'll remind you to review this chapter in {days} days. "

QUIZ_END_NEXT_REVIEW_ONE_DAY = "I'll remind you to review this chapter tomorrow. "

ACHIEVEMENT_UNLOCKED = "Achievement unlocked: {title}. {description} "

REPROMPT_AFTER_QUIZ = "Would you like to try another chapter?"

# ============================================================================
# Progress and Statistics
# ============================================================================

PROGRESS_NO_DATA = "You haven't completed any quizzes yet. Say 'quiz me on chapter one' to get started!"

PROGRESS_SUMMARY = "You have completed {completed} chapters and mastered {mastered}. "

PROGRESS_CHAPTER = (
    "In chapter {chapter}, your best score is {best} out of {total}, {percentage} percent, "
    "over {attempts} attempts with an average of {average} percent. "
)

PROGRESS_CHAPTER_NONE = "You haven't taken the chapter {chapter} quiz yet. "

PROGRESS_STREAK = "Your study streak is {streak} days. "

ACHIEVEMENTS_NONE = "You haven't unlocked any achievements yet. "

ACHIEVEMENTS_LIST = "Your achievements: {titles}. "

REVIEWS_NONE = "Nothing is due for review. "

REVIEWS_DUE = "Due for review: chapters {chapters}. "

# ============================================================================
# Help Messages
# ============================================================================

HELP_MESSAGE = (
    "I quiz you on the chapters of the debate guide. "
    "Say 'quiz me on chapter three' to start, "
    "'how am I doing' for your progress, "
    "'my achievements' to hear what you've unlocked, "
    "or 'what should I review' for due reviews. "
    "What would you like to do?"
)

HELP_DURING_QUIZ = (
    "Answer with the number of an option, or say true or false. "
    "Say 'hint' for a hint, 'previous' to go back, or 'repeat' to hear the question again. "
    "To stop, say 'stop'."
)

REPROMPT_GENERAL = "Which chapter would you like to practice?"

# ============================================================================
# Exit Messages
# ============================================================================

EXIT_SKILL_MESSAGE = "Goodbye! Keep practicing your debating."

EXIT_DURING_QUIZ = "Okay, stopping the quiz. You answered {answered} of {total} questions. Goodbye!"

# ============================================================================
# Error Messages
# ============================================================================

FALLBACK_MESSAGE = "Sorry, I didn't get that. Say 'help' if you're stuck."

ERROR_MESSAGE = "Sorry, something went wrong. Please try again."

NOT_UNDERSTOOD_DURING_QUIZ = "I didn't catch your answer. "

# ============================================================================
# Spoken number words
# ============================================================================

NUMBER_WORDS = {
    "one": 1,
    "first": 1,
    "two": 2,
    "to": 2,
    "too": 2,
    "second": 2,
    "three": 3,
    "third": 3,
    "four": 4,
    "for": 4,
    "fourth": 4,
    "five": 5,
    "fifth": 5,
    "six": 6,
    "sixth": 6,
    "seven": 7,
    "seventh": 7,
    "eight": 8,
    "eighth": 8,
    "nine": 9,
    "ninth": 9,
    "ten": 10,
    "tenth": 10,
}

TRUE_WORDS = ("true", "yes", "correct", "right")

FALSE_WORDS = ("false", "no", "incorrect", "wrong")

# ============================================================================
# Session States
# ============================================================================

STATE_NONE = "NONE"
STATE_QUIZ = "QUIZ"
STATE_RESULTS = "RESULTS"
