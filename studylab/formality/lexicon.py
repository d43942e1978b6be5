"""Curated closed-class word lists and open-class seeds for POS tagging.

Sources:
  - Heylighen & Dewaele (1999, 2002): formality / contextuality measure
  - Penn Treebank closed-class inventories (Santorini, 1990)
  - Biber et al. (1999): most frequent lexical verbs / adjectives in
    conversation

Closed classes (articles, pronouns, prepositions, conjunctions,
determiners, auxiliaries, interjections) are listed exhaustively enough
for spoken English.  Open classes (verbs, adjectives, adverbs) are seeded
with the high-frequency conversational vocabulary and extended at tagging
time with suffix rules.  Anything unknown falls back to a noun reading.
"""

from __future__ import annotations

ARTICLES: frozenset[str] = frozenset({"a", "an", "the"})

# ═══════════════════════════════════════════════════════════════════════════
# PRONOUNS (personal, possessive, reflexive, indefinite, interrogative)
# ═══════════════════════════════════════════════════════════════════════════
PRONOUNS: frozenset[str] = frozenset({
    "i", "me", "my", "mine", "myself",
    "you", "your", "yours", "yourself", "yourselves",
    "he", "him", "his", "himself",
    "she", "her", "hers", "herself",
    "it", "its", "itself",
    "we", "us", "our", "ours", "ourselves",
    "they", "them", "their", "theirs", "themselves",
    "someone", "somebody", "something", "anyone", "anybody", "anything",
    "everyone", "everybody", "everything", "nobody", "nothing", "none",
    "one", "oneself",
    "who", "whom", "whose", "what", "which", "whoever", "whatever",
    "y'all",
})

# ═══════════════════════════════════════════════════════════════════════════
# PREPOSITIONS
# ═══════════════════════════════════════════════════════════════════════════
PREPOSITIONS: frozenset[str] = frozenset({
    "about", "above", "across", "after", "against", "along", "amid",
    "among", "around", "as", "at", "before", "behind", "below", "beneath",
    "beside", "besides", "between", "beyond", "by", "despite", "down",
    "during", "except", "for", "from", "in", "inside", "into", "like",
    "near", "of", "off", "on", "onto", "out", "outside", "over", "past",
    "per", "since", "through", "throughout", "till", "toward", "towards",
    "under", "underneath", "until", "unto", "up", "upon", "via", "with",
    "within", "without",
})

CONJUNCTIONS: frozenset[str] = frozenset({
    "and", "but", "or", "nor", "so", "yet", "because", "although",
    "though", "while", "whereas", "if", "unless", "whether", "than",
    "that", "once", "whenever", "wherever",
})

# Non-article determiners are not scored.
DETERMINERS: frozenset[str] = frozenset({
    "this", "these", "those", "some", "any", "each", "every", "either",
    "neither", "another", "such", "all", "both", "few", "many", "much",
    "more", "most", "several", "no", "other", "own", "enough", "less",
    "least",
})

PARTICLES: frozenset[str] = frozenset({"to"})

NUMBERS: frozenset[str] = frozenset({
    "zero", "two", "three", "four", "five", "six", "seven", "eight",
    "nine", "ten", "eleven", "twelve", "twenty", "thirty", "hundred",
    "thousand", "million", "first", "second", "third",
})

# ═══════════════════════════════════════════════════════════════════════════
# VERBS: auxiliaries, modals, copulas
# ═══════════════════════════════════════════════════════════════════════════
COPULAS: frozenset[str] = frozenset({
    "be", "is", "am", "are", "was", "were", "been", "being",
})

AUXILIARIES: frozenset[str] = frozenset({
    "do", "does", "did", "done",
    "have", "has", "had", "having",
})

MODALS: frozenset[str] = frozenset({
    "can", "could", "may", "might", "must", "shall", "should", "will",
    "would", "ought",
})

# Base forms of high-frequency lexical verbs.  Inflected regular forms
# are recognized by suffix stripping in the tagger.
VERB_BASES: frozenset[str] = frozenset({
    "add", "agree", "allow", "answer", "appear", "apply", "ask", "assist",
    "become", "begin", "believe", "bring", "build", "buy", "call", "care",
    "change", "chat", "check", "choose", "come", "consider", "continue",
    "cook", "create", "cry", "dance", "decide", "describe", "die",
    "drink", "drive", "eat", "enjoy", "expect", "explain", "fall", "feel",
    "find", "finish", "follow", "forget", "get", "give", "go", "grow",
    "guess", "happen", "hate", "hear", "help", "hold", "hope", "imagine",
    "include", "keep", "know", "laugh", "lead", "learn", "leave", "let",
    "like", "listen", "live", "look", "lose", "love", "make", "mean", "meet",
    "mention", "mind", "miss", "move", "need", "offer", "open", "pass",
    "pay", "plan", "play", "prefer", "provide", "pull", "put", "reach",
    "read", "recommend", "remember", "remain", "report", "require",
    "run", "say", "see", "seem", "sell", "send", "serve", "set", "share",
    "show", "sing", "sit", "sleep", "smile", "sound", "speak", "spend",
    "stand", "start", "stay", "stop", "suggest", "suppose", "take",
    "talk", "tell", "thank", "think", "travel", "try", "turn",
    "understand", "use", "visit", "wait", "walk", "want", "watch",
    "welcome", "win", "wish", "wonder", "work", "worry", "write",
})

# Irregular inflections of the verbs above.
IRREGULAR_VERB_FORMS: frozenset[str] = frozenset({
    "became", "began", "begun", "bought", "brought", "built", "came",
    "chose", "chosen", "drank", "drove", "driven", "ate", "eaten", "fell",
    "fallen", "felt", "found", "forgot", "forgotten", "gave", "given",
    "went", "gone", "got", "gotten", "grew", "grown", "heard", "held",
    "kept", "knew", "known", "led", "left", "lost", "made", "meant", "met",
    "paid", "ran", "said", "saw", "seen", "sold", "sent", "sang", "sung",
    "sat", "slept", "spoke", "spoken", "spent", "stood", "took", "taken",
    "told", "thought", "understood", "won", "wrote", "written",
})

# ═══════════════════════════════════════════════════════════════════════════
# ADJECTIVES
# ═══════════════════════════════════════════════════════════════════════════
ADJECTIVES: frozenset[str] = frozenset({
    "able", "bad", "beautiful", "best", "better", "big", "busy", "clear",
    "close", "cold", "common", "different", "difficult", "early", "easy",
    "fair", "familiar", "fine", "free", "friendly", "full", "glad", "good",
    "great", "happy", "hard", "high", "hot", "important", "interesting",
    "alive", "awful", "kind", "large", "late", "likely", "little",
    "lively", "lonely",
    "long", "lovely", "low", "main", "natural", "new", "nice", "old",
    "open", "personal", "polite", "possible", "pretty", "quick", "quiet",
    "ready", "real", "recent", "right", "sad", "same", "short", "silly",
    "simple", "small", "social", "sorry", "special", "strong", "sure",
    "tired", "true", "ugly", "warm", "weird", "whole", "wrong", "young",
    "formal", "informal", "casual", "professional", "robotic", "human",
    "favorite", "favourite",
})

ADJECTIVE_SUFFIXES: tuple[str, ...] = (
    "ful", "less", "ous", "ive", "able", "ible", "ical",
)

# "-ing" / "-ed" words that are nouns or otherwise not verb forms.
ING_NOUNS: frozenset[str] = frozenset({
    "thing", "things", "morning", "evening", "ceiling", "wedding",
    "king", "ring", "spring", "string", "wing", "during", "nothing",
    "something", "anything", "everything", "feeling", "feelings",
})

ED_NON_VERBS: frozenset[str] = frozenset({
    "indeed", "hundred", "speed", "seed", "feed", "breed", "sacred",
    "naked", "wicked", "bed", "red", "shed",
})

# ═══════════════════════════════════════════════════════════════════════════
# ADVERBS
# ═══════════════════════════════════════════════════════════════════════════
ADVERBS: frozenset[str] = frozenset({
    "again", "almost", "already", "also", "always", "anyway", "away",
    "back", "even", "ever", "here", "how", "just", "later", "maybe",
    "never", "not", "now", "often", "only", "perhaps", "quite", "rather",
    "really", "still", "sometimes", "soon", "then", "there", "today",
    "together", "tomorrow", "tonight", "too", "very", "well", "when",
    "where", "why", "yesterday", "kinda", "sorta", "pretty",
})

# "-ly" words that are not adverbs.
LY_EXCEPTIONS: frozenset[str] = frozenset({
    "family", "friendly", "lovely", "likely", "lonely", "lively", "early",
    "ugly", "silly", "holy", "only", "reply", "supply", "apply", "fly",
    "july", "italy", "belly", "bully", "ally", "rally", "jelly",
})

# ═══════════════════════════════════════════════════════════════════════════
# INTERJECTIONS / EXPRESSIONS
# ═══════════════════════════════════════════════════════════════════════════
INTERJECTIONS: frozenset[str] = frozenset({
    "ah", "aha", "aw", "bye", "cheers", "eh", "gosh", "goodbye", "ha",
    "haha", "hello", "hey", "hi", "hmm", "huh", "mhm", "mm", "nah",
    "oh", "okay", "ok", "oops", "ouch", "please", "uh", "um", "umm",
    "wow", "yay", "yeah", "yep", "yes", "yup", "whoa", "er", "erm",
    "alright",
})

# Words that read as nouns whatever their neighbours ("thanks" would
# otherwise strip to the verb "thank").
LEXICAL_NOUNS: frozenset[str] = frozenset({"thanks", "congratulations", "regards"})

# Demonstratives stand in for a noun phrase ("that sounds great") unless
# a noun follows ("that book").
DEMONSTRATIVES: frozenset[str] = frozenset({"this", "that", "these", "those"})
