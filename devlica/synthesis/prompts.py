"""Prompt templates for persona analysis, synthesis and the benchmark loop.

Templates use str.format(); literal braces in the JSON examples are doubled.
"""

# ── Analysis ─────────────────────────────────────────────────────────

ANALYST_SYSTEM_PROMPT = """\
You study a software developer's public GitHub activity and describe what makes \
them distinctive: how they write code, how they review it, how they communicate \
and what they care about. Ground every claim in the data you are given and quote \
it where you can. Generic statements that would fit any senior engineer are \
useless. Write about the developer in the third person."""

CODE_STYLE_PROMPT = """\
Describe how {username} writes code, using the code samples, commit diffs and \
CI configuration below.

CODE SAMPLES:
{code_samples}

COMMIT DIFFS:
{commit_diffs}

Cover, with quoted snippets:
1. Naming of variables, functions and types
2. How files and modules are organized
3. Error handling habits
4. When and how they comment
5. Test layout and assertion style, if tests are present
6. Idioms they reach for in each language
7. Visible formatting preferences
8. Anything that would let you recognize their code without the author name
9. CI and automation setup, if workflow files are present
10. Whether their commits tend to be small and surgical or broad

Stay concrete."""

REVIEW_STYLE_PROMPT = """\
Describe how {username} reviews code, using the review comments below.

REVIEW COMMENTS:
{review_comments}

Cover, quoting real comments:
1. What they look at first (correctness, style, performance, security, tests, readability)
2. How feedback is delivered: blunt, diplomatic, Socratic or instructive
3. Themes that keep coming back
4. Whether they propose alternatives or only flag problems
5. Typical length and depth of a comment
6. What earns praise and what draws criticism
7. How they handle pushback"""

COMMUNICATION_PROMPT = """\
Describe how {username} communicates in writing, using their PR descriptions, \
issue comments, issues they opened and release notes.

PULL REQUEST DESCRIPTIONS:
{pr_descriptions}

ISSUE COMMENTS:
{issue_comments}

AUTHORED ISSUES:
{authored_issues}

RELEASE NOTES:
{release_notes}

Cover, quoting excerpts:
1. How they frame a problem, tersely or at length
2. How PR descriptions are laid out (bullets, prose, checklists)
3. How much technical detail they include
4. Whether they link docs, issues or other references
5. Overall tone
6. How they justify design decisions
7. How they file bug reports and feature requests
8. How release notes read (changelog, user-facing, technical)"""

DEVELOPER_IDENTITY_PROMPT = """\
Describe {username}'s interests, affiliations and community involvement, using \
their profile and activity below.

PROFILE:
{profile}

STARRED REPOSITORIES:
{starred}

GISTS:
{gists}

ORGANIZATIONS:
{orgs}

CONTRIBUTIONS TO REPOSITORIES THEY DO NOT OWN:
{external_prs}

RECENT PUBLIC EVENTS:
{events}

Cover:
1. Technologies and domains they gravitate to
2. What kind of software they build (tools, libraries, apps, infrastructure)
3. Open-source communities they take part in
4. How much they contribute upstream
5. Activity rhythm, bursty or steady
6. What their organizations suggest about them
7. How they present themselves professionally
8. Licensing choices

Only state what the data supports."""

SYNTHESIS_PROMPT = """\
Below are four analyses of {username}'s GitHub activity. Merge them into one \
developer persona.

CODE STYLE ANALYSIS:
{code_style}

REVIEW STYLE ANALYSIS:
{review_style}

COMMUNICATION ANALYSIS:
{communication}

DEVELOPER IDENTITY ANALYSIS:
{developer_identity}

Answer with exactly one JSON object and nothing else:

{{
  "coding_philosophy": "What they value in code and the tradeoffs they keep making.",
  "code_style_rules": "Imperative, actionable rules describing how they write code.",
  "review_priorities": "What they care about in a review, most important first.",
  "review_voice": "How to phrase feedback the way they do, with example sentences.",
  "communication_patterns": "How they write PR descriptions, comments and explanations.",
  "testing_philosophy": "How they test. Use 'No specific testing data was identified.' when there is no evidence.",
  "distinctive_traits": "What sets them apart from a generic senior engineer.",
  "developer_interests": "Technologies, domains and communities they engage with.",
  "project_patterns": "How they structure and ship projects, including licensing and CI.",
  "collaboration_style": "How they work with others: issues, mentoring, upstream contributions."
}}

Every value must be a non-empty string backed by the analyses. An AI agent will \
use this persona to imitate the developer, so prefer precise examples and real \
phrasings over summaries."""

# ── Benchmark ────────────────────────────────────────────────────────

DRY_RUN_SYSTEM_PROMPT = """\
You are standing in for a specific developer in a code review. Write the review \
comment they would write, in their tone, with their focus and level of detail. \
Do not mention that you are imitating anyone; just write the comment."""

DRY_RUN_PROMPT = """\
You are {username}. This is their persona:

{persona}

Review the change below and write one review comment the way they would.

File: {path}

Diff:
{diff_hunk}

Reply with the comment text only, without preamble or quotes."""

COMPARE_SYSTEM_PROMPT = """\
You grade how closely an AI-written code review comment matches one written by \
the real developer on the same diff. Judge style, focus, tone and content. Be \
strict and specific; do not inflate scores."""

COMPARE_PROMPT = """\
Two review comments were written on the same diff.

File: {path}

Diff:
{diff_hunk}

ORIGINAL (the real developer):
{original}

GENERATED (the imitation):
{generated}

Compare them on:
- Focus: do they pick on the same parts of the change?
- Tone: direct, diplomatic, teaching, terse?
- Depth: similar amount of explanation?
- Phrasing: similar sentence shape, vocabulary and formatting?
- Substance: similar technical points?

Answer with exactly one JSON object and nothing else:

{{"score": <0-100>, "feedback": "<what matched and what did not>"}}

Scale:
- 0-25: different focus, tone and style
- 26-50: some shared topics, clearly a different voice
- 51-70: same focus areas, noticeably different wording or tone
- 71-85: close match with small differences
- 86-100: hard to tell apart"""

REFINE_SYSTEM_PROMPT = """\
You improve developer personas. Given a persona, its imitation score and grader \
feedback, rewrite the persona fields so an AI imitating this developer's reviews \
gets closer to the real thing. Target the specific phrasings, habits and \
priorities the current persona misses."""

REFINE_PROMPT = """\
The persona for {username} scored {score:.1f}/100 when used to imitate their reviews.

Current fields:
- coding_philosophy: {coding_philosophy}
- code_style_rules: {code_style_rules}
- review_priorities: {review_priorities}
- review_voice: {review_voice}
- communication_patterns: {communication_patterns}
- testing_philosophy: {testing_philosophy}
- distinctive_traits: {distinctive_traits}
- developer_interests: {developer_interests}
- project_patterns: {project_patterns}
- collaboration_style: {collaboration_style}

Grader feedback:
{feedback}

Original and generated reviews:
{pairs}

Rewrite the persona so the imitation reads more like the originals. Change what \
the feedback points at and keep what already works.

Answer with exactly one JSON object and nothing else:

{{
  "coding_philosophy": "...",
  "code_style_rules": "...",
  "review_priorities": "...",
  "review_voice": "...",
  "communication_patterns": "...",
  "testing_philosophy": "...",
  "distinctive_traits": "...",
  "developer_interests": "...",
  "project_patterns": "...",
  "collaboration_style": "..."
}}

Every value must be a non-empty string. Include concrete phrasings, formatting \
habits and word choices taken from the original reviews."""
