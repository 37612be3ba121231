from hub_onboarding_agent.plan_document import (
    ElementKind,
    PageLayout,
    PlanLink,
    parse_hubs_from_plan,
    parse_inline,
    parse_objectives_from_plan,
    prepare_plan_markdown,
    preprocess_plan_for_pdf,
    render_plan_document,
)

PLAN = (
    "## SALES HUB\n"
    "\n"
    "### Sales Process #1\n"
    "\n"
    "Properties:\n"
    "- **Budget**: Currency\n"
    "See [Deals](https://knowledge.hubspot.com/deals)."
)


class TestParseInline:
    def test_bold_and_link_runs(self):
        links = []
        runs = parse_inline("See [Deals](knowledge.hubspot.com/deals) and **bold** text", links)

        assert [run.text for run in runs] == ["See ", "Deals", " and ", "bold", " text"]
        assert [run.bold for run in runs] == [False, False, False, True, False]
        assert runs[1].link_index == 0
        assert links == [PlanLink(0, "Deals", "https://knowledge.hubspot.com/deals")]

    def test_unclosed_bold_runs_to_end_of_line(self):
        runs = parse_inline("**Properties: Deal amount", [])

        assert len(runs) == 1
        assert runs[0].bold
        assert runs[0].text == "Properties: Deal amount"

    def test_plain_text(self):
        runs = parse_inline("Nothing special", [])

        assert [(run.text, run.bold, run.link_index) for run in runs] == [
            ("Nothing special", False, None)
        ]


class TestRenderPlanDocument:
    def test_classifies_lines(self):
        document = render_plan_document(PLAN)

        assert [element.kind for element in document.elements] == [
            ElementKind.HEADING,
            ElementKind.BLANK,
            ElementKind.SUBHEADING,
            ElementKind.BLANK,
            ElementKind.LABEL,
            ElementKind.LIST_ITEM,
            ElementKind.PARAGRAPH,
        ]
        assert document.elements[0].text == "SALES HUB"
        assert document.elements[5].runs[0].text == "Budget"
        assert document.elements[5].runs[0].bold

    def test_links_become_placeholders(self):
        document = render_plan_document(PLAN)
        paragraph = document.elements[-1]

        assert paragraph.text == "See {{LINK:0}}."
        assert paragraph.link_indexes == [0]
        assert document.link(0).url == "https://knowledge.hubspot.com/deals"

    def test_no_link_is_dropped(self):
        markdown = "\n".join(
            f"- [Article {index}](https://knowledge.hubspot.com/{index})" for index in range(7)
        )
        document = render_plan_document(markdown)

        assert [link.index for link in document.links] == list(range(7))
        placeholders = "".join(element.text for element in document.elements)
        for index in range(7):
            assert f"{{{{LINK:{index}}}}}" in placeholders

    def test_pagination_respects_margins(self):
        layout = PageLayout()
        markdown = "\n".join(f"Paragraph line {index}" for index in range(200))
        document = render_plan_document(markdown, layout)

        assert document.page_count > 1
        pages = [element.page for element in document.elements]
        assert pages == sorted(pages)
        for element in document.elements:
            assert (
                element.y == layout.top_margin
                or element.y + element.height <= layout.content_bottom
            )
        assert [element.text for element in document.elements] == [
            f"Paragraph line {index}" for index in range(200)
        ]
        assert sum(len(page) for page in document.pages()) == 200

    def test_start_y_offsets_first_element(self):
        document = render_plan_document("Hello", start_y=120.0)

        assert document.elements[0].y == 120.0
        assert document.elements[0].page == 1

    def test_long_lines_wrap(self):
        layout = PageLayout(max_chars_per_line=20)
        document = render_plan_document("word " * 30, layout)

        assert len(document.elements[0].lines) > 1
        assert all(len(line) <= 20 for line in document.elements[0].lines)


class TestPlanPreprocessing:
    def test_preprocess_drops_title_and_sign_off(self):
        text = preprocess_plan_for_pdf(
            "# Acme Implementation Plan\n\nIntro\n\n## SALES Hub\n\n"
            "Let me know if this plan works for you or needs changes."
        )

        assert "Implementation Plan" not in text
        assert "Let me know" not in text
        assert "## SALES HUB" in text
        assert "Intro" in text

    def test_preprocess_drops_objectives_block(self):
        text = preprocess_plan_for_pdf(
            "Intro\n**Objectives:**\nNeed/Objective #1: Organize\nNeed/Objective #2: Report\n"
            "## SALES HUB\n"
        )

        assert "Need/Objective" not in text
        assert "## SALES HUB" in text

    def test_prepare_normalizes_first(self):
        markdown = prepare_plan_markdown("Intro\n## SALES Hub\n- Hub Spot setup")

        assert "Intro\n\n## SALES HUB" in markdown
        assert "HubSpot setup" in markdown

    def test_parse_hubs(self):
        plan = "## SALES HUB\ntext\n## MARKETING HUB\n## sales hub"

        assert parse_hubs_from_plan(plan) == ["SALES HUB", "MARKETING HUB"]
        assert parse_hubs_from_plan(None) == []

    def test_parse_objectives(self):
        plan = (
            "**Need/Objective #1:** Organize the pipeline\n"
            "Need/Objective #2: Automate follow-up"
        )

        assert parse_objectives_from_plan(plan) == [
            "Organize the pipeline",
            "Automate follow-up",
        ]

    def test_parse_objectives_from_include_list(self):
        plan = "Your main objectives include [pipeline setup, lead scoring, ok]"

        assert parse_objectives_from_plan(plan) == ["pipeline setup", "lead scoring"]
