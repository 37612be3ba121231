import pytest

from hub_onboarding_agent.markdown_normalizer import (
    REWRITE_RULES,
    normalize_markdown,
    rule_named,
)

# (rule name, input, expected output of that single rule)
RULE_CASES = [
    ("brand_split_across_lines", "Open Hub\nSpot settings", "Open HubSpot settings"),
    ("brand_split_across_lines", "hub \n  spot", "HubSpot"),
    ("brand_split_by_spaces", "Log in to Hub Spot CRM", "Log in to HubSpot CRM"),
    ("empty_heading", "Intro\n##\nBody", "Intro\n\nBody"),
    ("empty_bullet", "a\n-\nb", "a\n\nb"),
    ("whitespace_only_bullet", "-   \nnext", "\nnext"),
    ("bullet_content_on_next_line", "-\nFirst item", "- First item"),
    ("number_content_on_next_line", "1.\nConfigure pipeline", "1. Configure pipeline"),
    (
        "heading_glued_to_sentence",
        "## Sales ProcessThe trigger",
        "## Sales Process\n\nThe trigger",
    ),
    ("hub_glued_to_word", "SALES HUBThe pipeline", "SALES HUB\n\nThe pipeline"),
    (
        "section_word_glued",
        "Discovery StageThe trigger",
        "Discovery Stage\n\nThe trigger",
    ),
    (
        "lowercase_glued_to_stage_name",
        "the first callProposal Sent",
        "the first call\n\nProposal Sent",
    ),
    ("lowercase_glued_to_bold", "next step**Properties", "next step\n\n**Properties"),
    (
        "lowercase_glued_to_section_keyword",
        "after the demoProperties:",
        "after the demo\n\nProperties:",
    ),
    (
        "lowercase_glued_to_section_phrase",
        "lead is qualifiedThe trigger is a form.",
        "lead is qualified\n\nThe trigger is a form.",
    ),
    ("bold_label_colon_on_next_line", "**Owner**\n: Sales rep", "**Owner**: Sales rep"),
    ("bold_label_value_on_next_line", "**Timeline:**\n4 weeks", "**Timeline:** 4 weeks"),
    ("bold_label_glued_to_value", "**Timeline:**Four weeks", "**Timeline:** Four weeks"),
    (
        "bold_label_glued_to_bullet",
        "**Properties:**- Deal amount",
        "**Properties:**\n\n- Deal amount",
    ),
    (
        "section_title_glued_to_bullet",
        "**Lead Scoring Automation**- Score contacts",
        "**Lead Scoring Automation**\n\n- Score contacts",
    ),
    (
        "helpful_articles_inline_bullet",
        "Helpful Articles: - Set up deals",
        "Helpful Articles:\n\n- Set up deals",
    ),
    (
        "helpful_articles_glued_value",
        "Helpful Articles:[Deals](https://knowledge.hubspot.com)",
        "Helpful Articles: [Deals](https://knowledge.hubspot.com)",
    ),
    (
        "helpful_articles_glued_bullet",
        "Helpful Articles:-[Deals]",
        "Helpful Articles:\n\n- [Deals]",
    ),
    ("helpful_articles_trailing_dash", "Helpful Articles:-", "Helpful Articles:\n\n- "),
    ("letter_glued_to_duration", "Wait3 days", "Wait 3 days"),
    ("preposition_glued_to_digit", "over2 weeks", "over 2 weeks"),
    ("keyword_glued_to_digit", "Persona1", "Persona 1"),
    (
        "period_glued_to_numbered_item",
        "Import contacts.2- Create deals",
        "Import contacts. 2- Create deals",
    ),
    ("heading_glued_to_text", "Overview.## SALES HUB", "Overview.\n\n## SALES HUB"),
    ("heading_after_single_newline", "Intro\n## SALES HUB", "Intro\n\n## SALES HUB"),
    ("bold_label_glued_to_text", "rep**Properties:**", "rep\n\n**Properties:**"),
    (
        "bold_section_keyword_glued",
        "demo**Where to do this",
        "demo\n\n**Where to do this",
    ),
    ("bullet_glued_to_text", "Properties:- Deal amount", "Properties:\n- Deal amount"),
    ("bullet_dash_missing_space", "-Deal amount", "- Deal amount"),
    ("collapse_blank_lines", "a\n\n\n\nb", "a\n\nb"),
    ("strip_whitespace_lines", "a\n   \nb", "a\n\nb"),
    ("brand_final_fixup", "Hub Spot", "HubSpot"),
]

CLEAN_PLAN = (
    "# Acme Implementation Plan\n"
    "\n"
    "## SALES HUB\n"
    "\n"
    "**Discovery Stage** - The trigger is a demo request.\n"
    "\n"
    "Properties:\n"
    "\n"
    "- **Budget**: Currency Property\n"
)


class TestRules:
    @pytest.mark.parametrize("name,source,expected", RULE_CASES)
    def test_rule(self, name, source, expected):
        assert rule_named(name).apply(source) == expected

    def test_every_rule_has_a_case(self):
        covered = {name for name, _, _ in RULE_CASES}
        assert covered == {rule.name for rule in REWRITE_RULES}

    def test_rule_names_are_unique(self):
        names = [rule.name for rule in REWRITE_RULES]
        assert len(names) == len(set(names))

    def test_unknown_rule(self):
        with pytest.raises(KeyError):
            rule_named("does_not_exist")

    def test_hub_rule_keeps_brand(self):
        text = "Log in to HubSpot and open Settings"
        assert rule_named("hub_glued_to_word").apply(text) == text

    def test_bold_label_colon_needs_colon(self):
        text = "**Discovery Stage**\nThe trigger is a call."
        assert rule_named("bold_label_colon_on_next_line").apply(text) == text


class TestNormalizeMarkdown:
    def test_clean_plan_is_untouched(self):
        assert normalize_markdown(CLEAN_PLAN) == CLEAN_PLAN

    def test_repairs_glued_heading_and_bullet(self):
        source = "## SALES HUBThe pipeline\nProperties:- Deal amount"
        assert normalize_markdown(source) == (
            "## SALES HUB\n\nThe pipeline\nProperties:\n- Deal amount"
        )

    def test_brand_survives(self):
        for source in ("Hub Spot", "Hub\nSpot", "HUB  SPOT", "Use HubSpot daily"):
            normalized = normalize_markdown(source)
            assert "HubSpot" in normalized
            assert "Hub Spot" not in normalized

    def test_removes_empty_elements(self):
        assert normalize_markdown("Intro\n##\n-\nBody") == "Intro\n\nBody"

    @pytest.mark.parametrize(
        "source",
        [
            CLEAN_PLAN,
            "## SALES HUBThe pipeline\nProperties:- Deal amount",
            "Intro\n##\n-\nBody",
            "Open Hub\nSpot settings",
            "Wait3 days, then follow up over2 weeks",
        ],
    )
    def test_idempotent(self, source):
        once = normalize_markdown(source)
        assert normalize_markdown(once) == once

    def test_empty_input(self):
        assert normalize_markdown("") == ""
