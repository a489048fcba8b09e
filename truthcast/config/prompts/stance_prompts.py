"""Prompt templates for stance judgment.

The reasoning collaborator sees one claim and one source excerpt at a time
and returns a stance plus a relevance score. Aggregation across sources is
rule-based (see VerdictSynthesizer); the LLM never picks the final label.
"""

STANCE_SYSTEM_PROMPT = '''You are a careful fact-checking assistant.
You judge whether a single source excerpt supports or disputes a claim.
You only use the excerpt provided. You never use outside knowledge.'''


STANCE_USER_PROMPT = '''Judge the stance of this source excerpt toward the claim.

CLAIM:
{claim}

SOURCE EXCERPT:
{excerpt}

Stances:
- supports: the excerpt affirms the claim
- disputes: the excerpt contradicts or corrects the claim
- mixed: the excerpt affirms part of the claim and contradicts another part
- neutral: the excerpt is on-topic but takes no position, or is off-topic

Relevance is 0-100: how directly the excerpt addresses the claim.

Return JSON only:
{{
    "stance": "supports" | "disputes" | "mixed" | "neutral",
    "relevance_score": 0-100
}}'''
