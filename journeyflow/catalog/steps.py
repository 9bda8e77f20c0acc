"""The fixed production catalog: auth -> scenario -> planning -> video -> feedback."""

from __future__ import annotations

from typing import Any, Dict, List

from ..contracts import JourneyPhase
from .models import NavigationGuard, StepDefinition, ValidationRule

AUTH = JourneyPhase.AUTH
SCENARIO = JourneyPhase.SCENARIO
PLANNING = JourneyPhase.PLANNING
VIDEO = JourneyPhase.VIDEO
FEEDBACK = JourneyPhase.FEEDBACK


def _non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and len(value) > 0


def _min_length(length: int):
    def check(value: Any) -> bool:
        return isinstance(value, str) and len(value) >= length

    return check


def _list_length(minimum: int = 1, maximum: int | None = None, exact: int | None = None):
    def check(value: Any) -> bool:
        if not isinstance(value, (list, tuple)):
            return False
        if exact is not None:
            return len(value) == exact
        if len(value) < minimum:
            return False
        return maximum is None or len(value) <= maximum

    return check


SKIP_CONDITIONS: Dict[str, str] = {
    "auto_generated_acceptable": "The generated result is acceptable as-is",
    "time_pressure": "The user is short on time",
    "text_only_mode": "Text-only mode, no imagery required",
    "rapid_prototyping": "Rapid prototyping mode",
    "auto_approval": "Automatic approval is configured",
    "batch_processing": "Batch processing mode",
    "no_feedback_required": "No feedback round is required",
    "internal_project": "Internal project",
    "manual_analysis": "Feedback will be analysed manually",
}


STEPS: List[StepDefinition] = [
    # auth
    StepDefinition(
        id="auth-login",
        phase=AUTH,
        optional_data=("return_url",),
        estimated_duration=30,
        weight=1,
        max_duration=60,
        error_threshold=0.05,
    ),
    StepDefinition(
        id="auth-verification",
        phase=AUTH,
        required_data=("auth.user_id", "auth.access_token"),
        optional_data=("auth.refresh_token",),
        validations=(
            ValidationRule(
                field="auth.access_token",
                kind="required",
                predicate=_non_empty_string,
                message="A valid access token is required",
            ),
        ),
        dependencies=("auth-login",),
        estimated_duration=5,
        weight=1,
        max_duration=10,
        error_threshold=0.02,
    ),
    # scenario
    StepDefinition(
        id="scenario-input",
        phase=SCENARIO,
        required_data=("auth.user_id",),
        optional_data=("project.project_id",),
        validations=(
            ValidationRule(
                field="auth.user_id",
                kind="required",
                predicate=_non_empty_string,
                message="An authenticated user is required",
            ),
        ),
        dependencies=("auth-verification",),
        estimated_duration=180,
        weight=3,
        max_duration=300,
        error_threshold=0.1,
    ),
    StepDefinition(
        id="scenario-story-generation",
        phase=SCENARIO,
        required_data=("scenario.title", "scenario.description"),
        validations=(
            ValidationRule(
                field="scenario.title",
                kind="required",
                predicate=_min_length(5),
                message="The scenario title needs at least 5 characters",
            ),
        ),
        dependencies=("scenario-input",),
        estimated_duration=120,
        weight=4,
        max_duration=180,
        error_threshold=0.15,
    ),
    StepDefinition(
        id="scenario-story-editing",
        phase=SCENARIO,
        required_data=("scenario.story_steps",),
        validations=(
            ValidationRule(
                field="scenario.story_steps",
                predicate=_list_length(exact=4),
                message="The story needs exactly 4 beats",
            ),
        ),
        dependencies=("scenario-story-generation",),
        estimated_duration=300,
        can_skip=True,
        skip_conditions=("auto_generated_acceptable",),
        weight=5,
        max_duration=600,
        error_threshold=0.1,
    ),
    StepDefinition(
        id="scenario-thumbnail-generation",
        phase=SCENARIO,
        required_data=("scenario.story_steps",),
        dependencies=("scenario-story-editing",),
        estimated_duration=180,
        can_skip=True,
        skip_conditions=("text_only_mode",),
        weight=3,
        max_duration=300,
        error_threshold=0.2,
    ),
    StepDefinition(
        id="scenario-completion",
        phase=SCENARIO,
        required_data=("scenario.scenario_id", "scenario.story_steps"),
        optional_data=("scenario.thumbnails",),
        validations=(
            ValidationRule(
                field="scenario.scenario_id",
                kind="required",
                predicate=_non_empty_string,
                message="A scenario id is required",
            ),
        ),
        dependencies=("scenario-thumbnail-generation",),
        estimated_duration=10,
        weight=1,
        max_duration=30,
        error_threshold=0.05,
    ),
    # planning
    StepDefinition(
        id="planning-initialization",
        phase=PLANNING,
        required_data=("scenario.scenario_id", "scenario.story_steps"),
        optional_data=("project.project_id",),
        dependencies=("scenario-completion",),
        estimated_duration=60,
        weight=2,
        max_duration=120,
        error_threshold=0.1,
    ),
    StepDefinition(
        id="planning-story-breakdown",
        phase=PLANNING,
        required_data=("planning.planning_project_id",),
        dependencies=("planning-initialization",),
        estimated_duration=120,
        weight=4,
        max_duration=180,
        error_threshold=0.15,
    ),
    StepDefinition(
        id="planning-shot-creation",
        phase=PLANNING,
        required_data=("planning.story_breakdown",),
        validations=(
            ValidationRule(
                field="planning.shot_sequences",
                predicate=_list_length(minimum=8, maximum=16),
                message="Between 8 and 16 shot sequences are required",
            ),
        ),
        dependencies=("planning-story-breakdown",),
        estimated_duration=240,
        weight=6,
        max_duration=360,
        error_threshold=0.2,
    ),
    StepDefinition(
        id="planning-shot-editing",
        phase=PLANNING,
        required_data=("planning.shot_sequences",),
        dependencies=("planning-shot-creation",),
        estimated_duration=420,
        can_skip=True,
        skip_conditions=("auto_generated_acceptable", "time_pressure"),
        weight=7,
        max_duration=600,
        error_threshold=0.15,
    ),
    StepDefinition(
        id="planning-conti-generation",
        phase=PLANNING,
        required_data=("planning.shot_sequences",),
        dependencies=("planning-shot-editing",),
        estimated_duration=300,
        can_skip=True,
        skip_conditions=("text_only_mode", "rapid_prototyping"),
        weight=5,
        max_duration=480,
        error_threshold=0.25,
    ),
    StepDefinition(
        id="planning-completion",
        phase=PLANNING,
        required_data=("planning.planning_project_id", "planning.shot_sequences"),
        optional_data=("planning.total_duration",),
        validations=(
            ValidationRule(
                field="planning.shot_sequences",
                predicate=_list_length(minimum=1),
                message="At least one shot sequence is required",
            ),
        ),
        dependencies=("planning-conti-generation",),
        estimated_duration=30,
        weight=2,
        max_duration=60,
        error_threshold=0.05,
    ),
    # video
    StepDefinition(
        id="video-preparation",
        phase=VIDEO,
        required_data=("planning.shot_sequences",),
        optional_data=("planning.total_duration",),
        dependencies=("planning-completion",),
        estimated_duration=60,
        weight=2,
        max_duration=120,
        error_threshold=0.1,
    ),
    StepDefinition(
        id="video-generation-start",
        phase=VIDEO,
        required_data=("video.generation_params",),
        dependencies=("video-preparation",),
        estimated_duration=30,
        weight=2,
        max_duration=60,
        error_threshold=0.1,
    ),
    StepDefinition(
        id="video-generation-progress",
        phase=VIDEO,
        required_data=("video.job_ids",),
        dependencies=("video-generation-start",),
        estimated_duration=600,
        weight=10,
        max_duration=1800,
        error_threshold=0.3,
    ),
    StepDefinition(
        id="video-generation-completion",
        phase=VIDEO,
        required_data=("video.video_generations",),
        validations=(
            ValidationRule(
                field="video.video_generations",
                predicate=_list_length(minimum=1),
                message="At least one generated video is required",
            ),
        ),
        dependencies=("video-generation-progress",),
        estimated_duration=30,
        weight=3,
        max_duration=60,
        error_threshold=0.1,
    ),
    StepDefinition(
        id="video-review",
        phase=VIDEO,
        required_data=("video.completed_videos",),
        dependencies=("video-generation-completion",),
        estimated_duration=300,
        can_skip=True,
        skip_conditions=("auto_approval", "batch_processing"),
        weight=4,
        max_duration=600,
        error_threshold=0.05,
    ),
    StepDefinition(
        id="video-approval",
        phase=VIDEO,
        required_data=("video.completed_videos",),
        optional_data=("video.review_comments",),
        dependencies=("video-review",),
        estimated_duration=120,
        can_skip=True,
        skip_conditions=("auto_approval",),
        weight=3,
        max_duration=180,
        error_threshold=0.05,
    ),
    StepDefinition(
        id="video-finalization",
        phase=VIDEO,
        required_data=("video.approved_videos",),
        validations=(
            ValidationRule(
                field="video.approved_videos",
                predicate=_list_length(minimum=1),
                message="At least one approved video is required",
            ),
        ),
        dependencies=("video-approval",),
        estimated_duration=60,
        weight=2,
        max_duration=120,
        error_threshold=0.05,
    ),
    # feedback
    StepDefinition(
        id="feedback-setup",
        phase=FEEDBACK,
        required_data=("video.approved_videos",),
        dependencies=("video-finalization",),
        estimated_duration=120,
        can_skip=True,
        skip_conditions=("no_feedback_required", "internal_project"),
        weight=2,
        max_duration=180,
        error_threshold=0.1,
    ),
    StepDefinition(
        id="feedback-collection",
        phase=FEEDBACK,
        required_data=("feedback.feedback_session_id",),
        dependencies=("feedback-setup",),
        estimated_duration=1800,
        can_skip=True,
        skip_conditions=("no_feedback_required",),
        weight=6,
        max_duration=3600,
        error_threshold=0.05,
    ),
    StepDefinition(
        id="feedback-analysis",
        phase=FEEDBACK,
        required_data=("feedback.total_feedback",),
        dependencies=("feedback-collection",),
        estimated_duration=180,
        can_skip=True,
        skip_conditions=("no_feedback_required", "manual_analysis"),
        weight=4,
        max_duration=300,
        error_threshold=0.1,
    ),
    StepDefinition(
        id="project-completion",
        phase=FEEDBACK,
        required_data=("project.project_id",),
        optional_data=("feedback.analysis_results",),
        validations=(
            ValidationRule(
                field="project.project_id",
                kind="required",
                predicate=_non_empty_string,
                message="A project id is required",
            ),
        ),
        dependencies=("feedback-analysis",),
        estimated_duration=60,
        weight=2,
        max_duration=120,
        error_threshold=0.02,
    ),
]


GUARDS: List[NavigationGuard] = [
    NavigationGuard(
        from_step="auth-login",
        to_step="scenario-input",
        reads=("auth.user_id",),
        predicate=lambda values: bool(values["auth.user_id"]),
        error_message="Login must be completed first",
        redirect_step="auth-login",
    ),
    NavigationGuard(
        from_step="scenario-completion",
        to_step="planning-initialization",
        reads=("scenario.scenario_id",),
        predicate=lambda values: bool(values["scenario.scenario_id"]),
        error_message="The scenario must be completed first",
        redirect_step="scenario-input",
    ),
    NavigationGuard(
        from_step="planning-completion",
        to_step="video-preparation",
        reads=("planning.planning_project_id",),
        predicate=lambda values: bool(values["planning.planning_project_id"]),
        error_message="Planning must be completed first",
        redirect_step="planning-initialization",
    ),
    NavigationGuard(
        from_step="video-finalization",
        to_step="feedback-setup",
        reads=("video.approved_videos",),
        predicate=lambda values: bool(values["video.approved_videos"]),
        error_message="Video generation must be completed first",
        redirect_step="video-preparation",
    ),
    NavigationGuard(
        from_step="video-generation-progress",
        to_step="planning-completion",
        predicate=lambda values: False,
        error_message="Cannot return to planning while videos are generating",
        allow_skip_override=False,
    ),
    NavigationGuard(
        from_step="project-completion",
        to_step="feedback-analysis",
        reads=("project.status",),
        predicate=lambda values: values["project.status"] != "completed",
        error_message="A completed project can no longer be modified",
        allow_skip_override=False,
    ),
]
