"""
Reference phrases, thresholds and weights for comment scoring.

The phrase classifiers compare a comment embedding against the embedding
of a fixed phrase. Phrases and cut-offs are kept verbatim so scores are
reproducible across deployments.
"""

# ============================================================
# Reference phrases
# ============================================================

GENERIC_PHRASE = "lgtm looks good nice job thanks approved acknowledgment simple agreement"

# Counterweight to GENERIC_PHRASE inside the genericness score.
GENERIC_TECHNICAL_PHRASE = (
    "implementation algorithm function method performance security "
    "architecture design pattern optimization"
)

TECHNICAL_CONTENT_PHRASE = (
    "implementation performance algorithm optimization security architecture "
    "refactor function method class interface type design pattern code review "
    "technical debt"
)

CODE_SUGGESTION_PHRASE = (
    "code example implementation suggestion refactor change modify update fix "
    "improve here is how you could instead try consider using"
)

BOT_PHRASE = (
    "automated bot ci continuous integration github actions jenkins travis "
    "circle ci automation system generated"
)

HUMAN_PHRASE = "I think we should consider my opinion in my experience personally I believe"

TEST_INDICATOR_PHRASE = (
    "test testing unit test integration test e2e test jest mocha cypress vitest "
    "test suite test case assertion expect describe it should mock stub spy fixture"
)


# ============================================================
# Classifier thresholds
# ============================================================

TECHNICAL_CONTENT_THRESHOLD = 0.35
CODE_SUGGESTION_THRESHOLD = 0.4
CODE_MARKER_BONUS = 0.2

MAX_GENERIC_SCORE = 0.8
MAX_BOT_LIKELIHOOD = 0.7
MAX_TEST_RELATEDNESS = 0.7

# Minimum context score kept by the context-aware pipeline.
MIN_CONTEXT_SCORE = 0.4


# ============================================================
# Context score multipliers
# ============================================================

UNKNOWN_AREA = "Unknown"

AREA_MATCH_SIMILARITY = 0.8
AREA_MATCH_BOOST = 1.8
AREA_RELATED_SIMILARITY = 0.5
AREA_RELATED_BOOST = 1.3
AREA_DIFFERENT_SIMILARITY = 0.3
AREA_DIFFERENT_PENALTY = 0.6
TECH_OVERLAP_WEIGHT = 0.5


# ============================================================
# Code-pattern similarity
# ============================================================

PATTERN_CHUNK_COUNT = 5
PATTERN_SIMILARITY_THRESHOLD = 0.3
PATTERN_SIMILARITY_WEIGHT = 0.3
PATTERN_OVERLAP_THRESHOLD = 0.5
PATTERN_OVERLAP_WEIGHT = 0.2


# ============================================================
# Reranking weights
# ============================================================

CONTEXT_WEIGHTS = {
    "semantic": 0.3,
    "context": 0.4,
    "quality": 0.2,
    "recency": 0.1,
}

BASE_SCORE_WEIGHT = 0.4
CHUNK_MATCH_BONUS = 0.5
CHUNK_PRIORITY_WEIGHT = 0.3
FUNCTION_CONTEXT_BONUS = 0.2
PATH_SIMILARITY_WEIGHT = 0.15
CODE_SNIPPET_BONUS = 0.2
SUBSTANTIAL_TEXT_BONUS = 0.1
SUBSTANTIAL_TEXT_CHARS = 50

SEARCH_TYPE_BONUS = {
    "chunk_comment": 0.4,
    "chunk_code": 0.4,
    "comment": 0.1,
    "combined": 0.05,
}
KEYWORD_BONUS = 0.15
BONUS_KEYWORDS = ("ignore", "coverage", "test", "istanbul")

PRIORITY_CHUNK_WEIGHT = 1.0
REGULAR_CHUNK_WEIGHT = 0.5


# ============================================================
# Diversity
# ============================================================

NEAR_DUPLICATE_SIMILARITY = 0.85
MAX_PER_AUTHOR = 2
MAX_PER_FILE = 3
FORCED_PROGRESS_RATIO = 0.7


# ============================================================
# Search fan-out
# ============================================================

MAX_PRIORITY_CHUNKS = 6
MAX_REGULAR_CHUNKS = 3
QUERY_CHUNK_COUNT = 3
QUERY_TEXT_CHARS = 500
