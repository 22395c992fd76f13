"""
Workflow Preset Unit Tests
"""

from storyboard_gateway.services import workflows


def test_unknown_workflow_falls_back_to_default():
    assert workflows.get_workflow("does-not-exist").key == workflows.DEFAULT_WORKFLOW
    assert workflows.get_workflow(None).key == workflows.DEFAULT_WORKFLOW
    assert workflows.get_workflow("viral-social").key == "viral-social"


def test_storyboard_instruction_mentions_selections():
    workflow = workflows.get_workflow("product-commercial")

    instruction = workflows.storyboard_instruction(workflow, 5, ["Minimal"], ["Soft light."])

    assert instruction.startswith(workflow.system_instruction)
    assert "Generate exactly 5 scenes" in instruction
    assert "style presets: Minimal" in instruction
    assert "visual style templates: Soft light." in instruction


def test_storyboard_instruction_without_selections():
    instruction = workflows.storyboard_instruction(workflows.get_workflow("music-video"), 3)
    assert "style presets" not in instruction
    assert "templates" not in instruction


def test_image_prompt_appends_art_style():
    workflow = workflows.get_workflow("music-video")

    prompt = workflows.image_prompt(workflow, "A neon skyline", ["Grainy."])

    assert prompt == f"A neon skyline. {workflow.art_style} Grainy."


def test_style_preview_instruction_asks_for_four():
    instruction = workflows.style_preview_instruction(workflows.get_workflow("music-video"))
    assert f"exactly {workflows.STYLE_PREVIEW_COUNT}" in instruction
    assert workflows.STYLE_PREVIEW_COUNT == 4


def test_schemas_require_core_fields():
    assert workflows.STORYBOARD_SCHEMA["items"]["required"] == ["description"]
    assert "metadata" in workflows.ENHANCED_STORYBOARD_SCHEMA["items"]["required"]
    assert "styleDirection" in workflows.STYLE_PREVIEW_SCHEMA["items"]["required"]
