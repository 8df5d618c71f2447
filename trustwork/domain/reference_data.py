from __future__ import annotations

from datetime import datetime

from trustwork.infrastructure.db.models import AssessmentTemplate, Difficulty, Question, Skill

SKILL_DEFINITIONS = [
    {"id": "skill-python-backend", "name": "Python Backend", "category": "development"},
    {"id": "skill-data-analysis", "name": "Data Analysis", "category": "data"},
]

TEMPLATE_DEFINITIONS = [
    {
        "id": "tpl-python-foundation",
        "skill_id": "skill-python-backend",
        "name": "Python Backend - Foundation",
        "difficulty": "foundation",
        "total_questions": 10,
        "time_budget_minutes": 40,
        "passing_fraction": 0.70,
        "excellence_fraction": 0.85,
        "retake_cost": 10,
        "unlock_min_engagements": 0,
    },
    {
        "id": "tpl-python-developer",
        "skill_id": "skill-python-backend",
        "name": "Python Backend - Developer",
        "difficulty": "developer",
        "total_questions": 10,
        "time_budget_minutes": 45,
        "passing_fraction": 0.70,
        "excellence_fraction": 0.85,
        "retake_cost": 15,
        "unlock_min_engagements": 1,
    },
    {
        "id": "tpl-data-foundation",
        "skill_id": "skill-data-analysis",
        "name": "Data Analysis - Foundation",
        "difficulty": "foundation",
        "total_questions": 10,
        "time_budget_minutes": 40,
        "passing_fraction": 0.70,
        "excellence_fraction": 0.85,
        "retake_cost": 10,
        "unlock_min_engagements": 0,
    },
]


def make_question(
    template_id: str,
    sequence: int,
    prompt: str,
    options: tuple[str, str, str, str],
    correct_letter: str,
    explanation: str,
) -> dict[str, object]:
    return {
        "id": f"{template_id}-q{sequence:02d}",
        "template_id": template_id,
        "prompt": prompt,
        "option_a": options[0],
        "option_b": options[1],
        "option_c": options[2],
        "option_d": options[3],
        "correct_letter": correct_letter,
        "explanation": explanation,
    }


_PYTHON_FOUNDATION = [
    (
        "Which built-in type is immutable?",
        ("list", "dict", "tuple", "set"),
        "C",
        "Tuples cannot be modified after creation.",
    ),
    (
        "What does `async def` declare?",
        ("A generator", "A coroutine function", "A thread", "A class method"),
        "B",
        "Calling an async function returns a coroutine object.",
    ),
    (
        "Which HTTP method is idempotent by definition?",
        ("POST", "PATCH", "CONNECT", "PUT"),
        "D",
        "Repeating a PUT leaves the resource in the same state.",
    ),
    (
        "What does `with open(path) as fh:` guarantee?",
        (
            "The file is closed when the block exits",
            "The file is read into memory",
            "The file is locked for writing",
            "The file is created if missing",
        ),
        "A",
        "The context manager closes the file even when an exception is raised.",
    ),
    (
        "Which status code signals a missing resource?",
        ("400", "401", "404", "500"),
        "C",
        "404 Not Found.",
    ),
    (
        "What is the result of `len({1, 1, 2})`?",
        ("1", "2", "3", "An error"),
        "B",
        "Sets drop duplicate members.",
    ),
    (
        "Which keyword hands a value back from a generator without ending it?",
        ("return", "yield", "await", "pass"),
        "B",
        "`yield` suspends the generator and resumes on the next iteration.",
    ),
    (
        "What does a database transaction guarantee on rollback?",
        (
            "Only committed rows are deleted",
            "None of its writes persist",
            "Indexes are rebuilt",
            "The connection is closed",
        ),
        "B",
        "Rolled back writes are discarded as a unit.",
    ),
    (
        "Which tool installs packages from PyPI?",
        ("pip", "venv", "pydoc", "idle"),
        "A",
        "pip resolves and installs distributions from the index.",
    ),
    (
        "What does `dict.get('k', 0)` return when 'k' is absent?",
        ("None", "KeyError", "0", "'k'"),
        "C",
        "The second argument is the fallback value.",
    ),
    (
        "Which isolation level prevents write skew?",
        ("READ UNCOMMITTED", "READ COMMITTED", "REPEATABLE READ", "SERIALIZABLE"),
        "D",
        "Only serializable isolation rules out write skew anomalies.",
    ),
    (
        "Which structure gives O(1) average membership tests?",
        ("list", "tuple", "set", "str"),
        "C",
        "Sets are hash based.",
    ),
]

_PYTHON_DEVELOPER = [
    (
        "What does `functools.lru_cache` store?",
        (
            "Results keyed by call arguments",
            "Compiled bytecode",
            "Open file handles",
            "Thread locals",
        ),
        "A",
        "Repeated calls with the same arguments reuse the cached result.",
    ),
    (
        "Which SQLAlchemy setting keeps attributes loaded after commit?",
        ("autoflush=False", "expire_on_commit=False", "echo=True", "future=True"),
        "B",
        "Without expiry, committed objects keep their loaded state.",
    ),
    (
        "What does optimistic locking detect?",
        (
            "Deadlocks",
            "Slow queries",
            "A row changed since it was read",
            "Missing indexes",
        ),
        "C",
        "A version column mismatch reveals a concurrent writer.",
    ),
    (
        "Which `asyncio` call runs awaitables concurrently and collects results?",
        ("asyncio.sleep", "asyncio.gather", "asyncio.run", "asyncio.shield"),
        "B",
        "gather schedules every awaitable and returns their results in order.",
    ),
    (
        "What is a partial unique index used for?",
        (
            "Uniqueness only for rows matching a predicate",
            "Faster full table scans",
            "Compressing large columns",
            "Sharding a table",
        ),
        "A",
        "For example at most one in-progress row per user.",
    ),
    (
        "Which FastAPI feature injects a database session per request?",
        ("Middleware", "Dependencies", "Background tasks", "Mounts"),
        "B",
        "A dependency with `yield` scopes the session to the request.",
    ),
    (
        "What does the transactional outbox pattern guarantee?",
        (
            "Events are delivered exactly once",
            "Events are written atomically with the state change",
            "Consumers never see duplicates",
            "Events are ordered globally",
        ),
        "B",
        "The event row commits or rolls back with the business write.",
    ),
    (
        "Which pytest feature shares setup across tests?",
        ("Markers", "Fixtures", "Plugins", "Assertions"),
        "B",
        "Fixtures provide reusable, scoped setup.",
    ),
    (
        "What does exponential backoff change between retries?",
        ("The payload", "The endpoint", "The wait time", "The HTTP method"),
        "C",
        "Each retry waits longer than the previous one.",
    ),
    (
        "Which JWT claim names the token subject?",
        ("iss", "aud", "sub", "exp"),
        "C",
        "`sub` identifies the principal the token is about.",
    ),
]

_DATA_FOUNDATION = [
    (
        "Which measure is least affected by outliers?",
        ("Mean", "Median", "Range", "Variance"),
        "B",
        "The median depends only on the middle of the ordered data.",
    ),
    (
        "Which SQL clause filters groups after aggregation?",
        ("WHERE", "HAVING", "ORDER BY", "LIMIT"),
        "B",
        "HAVING applies to aggregated groups.",
    ),
    (
        "A correlation of -0.9 indicates what?",
        (
            "No relationship",
            "A weak positive relationship",
            "A strong negative relationship",
            "Causation",
        ),
        "C",
        "Values near -1 mean a strong inverse linear relationship.",
    ),
    (
        "Which chart best shows a distribution of one numeric variable?",
        ("Pie chart", "Histogram", "Line chart", "Treemap"),
        "B",
        "Histograms bin values to show their distribution.",
    ),
    (
        "Which join keeps every row from the left table?",
        ("INNER JOIN", "LEFT JOIN", "RIGHT JOIN", "CROSS JOIN"),
        "B",
        "Unmatched right-side columns become NULL.",
    ),
    (
        "What is a p-value?",
        (
            "The probability the hypothesis is true",
            "The effect size",
            "The probability of data this extreme if the null holds",
            "The sample size",
        ),
        "C",
        "It is computed assuming the null hypothesis.",
    ),
    (
        "Which pandas method removes rows with missing values?",
        ("fillna", "dropna", "isna", "replace"),
        "B",
        "`dropna` drops rows or columns containing NaN.",
    ),
    (
        "What does normalisation to [0, 1] preserve?",
        ("Units", "Relative ordering", "The mean", "The variance"),
        "B",
        "Min-max scaling is monotonic.",
    ),
    (
        "Which sampling method splits a population into subgroups first?",
        ("Convenience", "Stratified", "Snowball", "Quota-free"),
        "B",
        "Stratified sampling draws from each stratum.",
    ),
    (
        "What does COUNT(DISTINCT col) return?",
        (
            "All rows",
            "Non-null rows",
            "Unique non-null values",
            "The maximum value",
        ),
        "C",
        "Duplicates and NULLs are excluded.",
    ),
]


def _bank(template_id: str, rows: list[tuple]) -> list[dict[str, object]]:
    return [
        make_question(template_id, sequence, prompt, options, letter, explanation)
        for sequence, (prompt, options, letter, explanation) in enumerate(rows, start=1)
    ]


QUESTION_DEFINITIONS: list[dict[str, object]] = [
    *_bank("tpl-python-foundation", _PYTHON_FOUNDATION),
    *_bank("tpl-python-developer", _PYTHON_DEVELOPER),
    *_bank("tpl-data-foundation", _DATA_FOUNDATION),
]


def build_catalog(created_at: datetime) -> list[Skill | AssessmentTemplate | Question]:
    """ORM rows for the reference catalog, parents before children."""
    rows: list[Skill | AssessmentTemplate | Question] = [
        Skill(**definition) for definition in SKILL_DEFINITIONS
    ]
    for definition in TEMPLATE_DEFINITIONS:
        rows.append(
            AssessmentTemplate(
                **{**definition, "difficulty": Difficulty(definition["difficulty"])},
                is_active=True,
            )
        )
    for definition in QUESTION_DEFINITIONS:
        rows.append(
            Question(
                **definition,
                version=1,
                previous_version_id=None,
                is_active=True,
                created_at=created_at,
            )
        )
    return rows
