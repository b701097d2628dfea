"""Edit planning: turns a workflow request into a policy-checked plan."""

from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

from ..models.enums import MaskMode, WorkflowType
from ..models.options import (
    BackyardLandscapingOptions,
    CustomOptions,
    DeclutterOptions,
    ExteriorSidingOptions,
    MaskInpaintOptions,
    OperationOptions,
    ProCleanSweepOptions,
    StagingOptions,
    StyleTransferOptions,
    parse_options,
)
from ..models.schemas import AuxiliaryImage, EditPlan, ImageAsset, WorkflowRequest
from ..utils.errors import ConfigurationError, InsufficientCredits, InvalidParameter, MissingParameter
from ..utils.images import get_mime_type
from ..utils.logger import get_logger
from .compliance import ComplianceValidator
from .ledger import CreditLedger

logger = get_logger(__name__)


SYSTEM_INSTRUCTIONS: Dict[bool, str] = {
    True: (
        "You are an expert real estate photo editor. Maintain structural integrity. "
        "Never invent new structures, windows, doors, or furniture. "
        "Only clean, brighten, and correct. Keep it photorealistic."
    ),
    False: (
        "You are a creative interior designer. Make the room look amazing. "
        "Never invent new structures, windows, or doors unless explicitly asked. "
        "Keep it photorealistic."
    ),
}

PRESERVE_STRUCTURE_CLAUSE = (
    " Never remove structural elements like pillars, vents, outlets, or built-in cabinets."
)

INPAINT_INSTRUCTION = (
    "You are an advanced inpainting editor. Follow the mask strictly. "
    "Never alter areas outside the mask unless instructed otherwise. "
    "Never hallucinate structures."
)

MASK_PROMPTS: Dict[MaskMode, str] = {
    MaskMode.REMOVE: (
        "Remove the masked object. Seamlessly inpaint using the surrounding context "
        "(floor, wall, etc). Preserve all structural elements."
    ),
    MaskMode.KEEP: (
        "Remove EVERYTHING in the image EXCEPT what is inside the mask. Replace the background "
        "with a clean, neutral renovation-ready look or empty room style."
    ),
    MaskMode.REPLACE: (
        "Replace the masked region with: {replacement}. "
        "Match lighting and perspective perfectly."
    ),
}

# Types that are rewritten into another type before planning
WRAPPER_TYPES = frozenset({
    WorkflowType.BATCH_EDIT,
    WorkflowType.OBJECT_REMOVE,
    WorkflowType.OBJECT_KEEP,
})

OBJECT_MASK_MODES = {
    WorkflowType.OBJECT_REMOVE: MaskMode.REMOVE,
    WorkflowType.OBJECT_KEEP: MaskMode.KEEP,
}


class Draft(NamedTuple):
    user_prompt: str
    system_instruction: str
    auxiliary_images: Tuple[AuxiliaryImage, ...] = ()
    mask_mode: Optional[MaskMode] = None


Builder = Callable[[OperationOptions, str, str], Draft]


class EditPlanner:
    """Builds edit plans from workflow requests and runs compliance on them."""

    def __init__(
        self,
        ledger: CreditLedger,
        validator: Optional[ComplianceValidator] = None,
        model_selector: str = "gemini-2.5-flash-image",
    ):
        """
        Initialize planner.

        Args:
            ledger: Credit ledger used for the affordability pre-check
            validator: Compliance validator (a default one is created if omitted)
            model_selector: Editing model the plans target
        """
        self.ledger = ledger
        self.validator = validator or ComplianceValidator()
        self.model_selector = model_selector

        self._builders: Dict[WorkflowType, Builder] = {
            WorkflowType.STANDARD_CLEAN: self._standard_clean,
            WorkflowType.PRO_CLEAN_SWEEP: self._pro_clean_sweep,
            WorkflowType.MASK_INPAINT: self._mask_inpaint,
            WorkflowType.LUXURY_ENHANCE: self._luxury_enhance,
            WorkflowType.TWILIGHT: self._twilight,
            WorkflowType.DECLUTTER: self._declutter,
            WorkflowType.SKY_REPLACEMENT: self._sky_replacement,
            WorkflowType.CUSTOM: self._custom,
            WorkflowType.STAGING: self._staging,
            WorkflowType.EXTERIOR_SIDING: self._exterior_siding,
            WorkflowType.BACKYARD_LANDSCAPING: self._backyard_landscaping,
            WorkflowType.STYLE_TRANSFER: self._style_transfer,
        }

        uncovered = set(WorkflowType) - set(self._builders) - WRAPPER_TYPES
        if uncovered:
            raise ConfigurationError(
                f"No prompt builder for: {', '.join(sorted(t.value for t in uncovered))}"
            )

    def resolve(self, request: WorkflowRequest) -> WorkflowRequest:
        """
        Rewrite wrapper operations into the operation that is actually planned.

        BATCH_EDIT takes its type from ``batch_operation``; OBJECT_REMOVE and
        OBJECT_KEEP become MASK_INPAINT with the matching mask mode.
        """
        effective = request

        if effective.operation_type == WorkflowType.BATCH_EDIT:
            options = parse_options(WorkflowType.BATCH_EDIT, effective.options)
            if options.batch_operation == WorkflowType.BATCH_EDIT:
                raise InvalidParameter("batch_operation cannot be BATCH_EDIT", WorkflowType.BATCH_EDIT.value)
            effective = effective.with_operation(options.batch_operation)

        if effective.operation_type in OBJECT_MASK_MODES:
            effective = effective.with_operation(
                WorkflowType.MASK_INPAINT,
                mask_mode=OBJECT_MASK_MODES[effective.operation_type],
            )

        return effective

    def plan(
        self, asset: ImageAsset, request: WorkflowRequest, check_credits: bool = True
    ) -> Tuple[EditPlan, List[str]]:
        """
        Build and validate a plan for ``asset``.

        ``check_credits=False`` skips the affordability pre-check for callers
        that have already charged for the operation.

        Returns:
            Tuple of (plan, warnings). A plan denied by compliance comes back
            with ``allowed=False`` and the denial reason in ``reasoning``.

        Raises:
            InsufficientCredits: If the balance cannot cover the operation
            MissingParameter: If a required option is absent
        """
        if check_credits:
            cost = self.ledger.cost_for(request.operation_type)
            balance = self.ledger.balance()
            if balance < cost:
                raise InsufficientCredits(cost, balance)

        effective = self.resolve(request)
        operation = effective.operation_type
        instruction = SYSTEM_INSTRUCTIONS[effective.strict_mode]

        missing: Optional[MissingParameter] = None
        try:
            options = parse_options(operation, effective.options)
            room_type = asset.analysis.room_type if asset.analysis else "room"
            draft = self._builders[operation](options, room_type, instruction)
        except MissingParameter as e:
            # Denial takes precedence: an operation the rules refuse outright is
            # reported as denied even when its options are incomplete
            missing = e
            draft = Draft("", instruction)

        plan = self._draft_plan(draft, operation)
        validation = self.validator.validate(effective, plan)
        if missing is not None and validation.is_allowed:
            raise missing

        update = {"risk_level": validation.risk_level}
        if not validation.is_allowed:
            update["allowed"] = False
            update["reasoning"] = validation.reason or "Action blocked by MLS rules."

        plan = plan.model_copy(update=update)

        logger.info(
            "Edit plan built",
            extra={
                "asset_id": asset.id,
                "operation": operation.value,
                "requested_operation": request.operation_type.value,
                "strict_mode": effective.strict_mode,
                "allowed": plan.allowed,
                "risk_level": plan.risk_level.value,
                "auxiliary_images": len(plan.auxiliary_images),
            }
        )

        return plan, validation.warnings

    def _draft_plan(self, draft: Draft, operation: WorkflowType) -> EditPlan:
        return EditPlan(
            model_selector=self.model_selector,
            system_instruction=draft.system_instruction,
            user_prompt=draft.user_prompt,
            auxiliary_images=list(draft.auxiliary_images),
            operation_type=operation,
            mask_mode=draft.mask_mode,
        )

    # ------------------------------------------------------------------
    # Prompt builders, one per operation type
    # ------------------------------------------------------------------

    def _standard_clean(self, options, room_type, instruction) -> Draft:
        return Draft(
            f"Fix white balance, correct vertical lines, remove lens dust, reduce noise, "
            f"ensure even lighting for this {room_type}.",
            instruction,
        )

    def _pro_clean_sweep(self, options: ProCleanSweepOptions, room_type, instruction) -> Draft:
        instruction += PRESERVE_STRUCTURE_CLAUSE
        if options.keep_furniture:
            prompt = (
                f"Remove all non-essential clutter from this {room_type}. Remove garbage, pet items, "
                f"toys, loose papers, cables, magnets on fridge, and countertop items. "
                f"Keep all furniture, lamps, and rugs. Inpaint background naturally."
            )
        else:
            prompt = (
                f"Empty this {room_type} completely. Remove all furniture, rugs, artwork, and decor. "
                f"Keep only built-in cabinets, kitchen islands, bathroom vanities, and fireplaces. "
                f"Reveal the floor and walls cleanly."
            )
        return Draft(prompt, instruction)

    def _mask_inpaint(self, options: MaskInpaintOptions, room_type, instruction) -> Draft:
        mask = AuxiliaryImage(data=options.mask_data, mime_type=get_mime_type(options.mask_data))
        prompt = MASK_PROMPTS[options.mask_mode].format(
            replacement=options.replace_prompt or "something matching the style"
        )
        return Draft(prompt, INPAINT_INSTRUCTION, (mask,), options.mask_mode)

    def _luxury_enhance(self, options, room_type, instruction) -> Draft:
        return Draft(
            f"Enhance this {room_type} for a luxury listing. Increase dynamic range (HDR), "
            f"clarity, and vibrance. Make the view out the windows clear.",
            instruction,
        )

    def _twilight(self, options, room_type, instruction) -> Draft:
        return Draft(
            "Convert this exterior shot to a twilight/dusk scene. Deep blue sky, "
            "warm glowing interior lights, garden lighting on.",
            instruction,
        )

    def _declutter(self, options: DeclutterOptions, room_type, instruction) -> Draft:
        items = ", ".join(options.clutter_categories) or "clutter"
        return Draft(
            f"Remove {items} from this {room_type}. Inpaint the background naturally "
            f"to match the surroundings. Keep main furniture.",
            instruction,
        )

    def _sky_replacement(self, options, room_type, instruction) -> Draft:
        return Draft(
            "Replace the sky with a beautiful, realistic blue sky with soft white clouds. "
            "Adjust lighting on the building to match.",
            instruction,
        )

    def _custom(self, options: CustomOptions, room_type, instruction) -> Draft:
        prompt = ""
        if options.colors:
            if options.colors.walls:
                prompt += f"Paint walls {options.colors.walls}. "
            if options.colors.floors:
                prompt += f"Change flooring to {options.colors.floors}. "
            if options.colors.cabinets:
                prompt += f"Paint cabinets {options.colors.cabinets}. "
        if options.prompt_override:
            prompt += options.prompt_override

        if not prompt.strip():
            raise MissingParameter("prompt_override", WorkflowType.CUSTOM.value)
        return Draft(prompt.strip(), instruction)

    def _staging(self, options: StagingOptions, room_type, instruction) -> Draft:
        if options.staging_item:
            prompt = (
                f"Add a photorealistic {options.staging_item} to this room. Place it naturally in "
                f"the scene, matching perspective, lighting, and shadows of the existing room."
            )
        elif options.staging_style:
            prompt = (
                f"Virtually stage this room in a {options.staging_style} style. Fill the room with "
                f"appropriate furniture, rugs, and decor matching this style. "
                f"Ensure photorealism and correct perspective."
            )
        else:
            prompt = "Virtually stage this room with modern furniture."
        return Draft(prompt, instruction)

    def _exterior_siding(self, options: ExteriorSidingOptions, room_type, instruction) -> Draft:
        return Draft(
            f"Change the exterior house siding to {options.colors.siding}. Maintain all windows, "
            f"doors, and roof exactly as they are. Adjust the texture and lighting to look photorealistic.",
            instruction,
        )

    def _backyard_landscaping(self, options: BackyardLandscapingOptions, room_type, instruction) -> Draft:
        return Draft(
            f"Redesign this backyard landscaping in a {options.landscaping_style} style. Add fresh grass "
            f"or patio pavers, clean up the garden beds, and add appropriate outdoor plants. "
            f"Keep the main house structure and fencing intact.",
            instruction,
        )

    def _style_transfer(self, options: StyleTransferOptions, room_type, instruction) -> Draft:
        reference = AuxiliaryImage(
            data=options.reference_style_data,
            mime_type=get_mime_type(options.reference_style_data),
        )
        return Draft(
            "Transfer the interior design style from the reference image to the source image. "
            "Match color palette, materials, and mood exactly.",
            instruction,
            (reference,),
        )
