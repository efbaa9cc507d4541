from models import Patch, PatchAction, PatchOp, Pod


def build_patch(pod: Pod, volumes: bool = True, node_selector: bool = True) -> Patch:
    """Turn a mutated pod into a JSON Patch.

    Fields are always replaced as a whole, never element by element, so the
    patch does not depend on the position of any volume in the list.
    """

    actions = []

    if volumes:
        actions.append(
            PatchAction(
                op=PatchOp.REPLACE,
                path="/spec/volumes",
                value=[vol.model_dump(exclude_none=True) for vol in pod.spec.volumes],
            )
        )

    if node_selector:
        actions.append(
            PatchAction(
                op=PatchOp.REPLACE,
                path="/spec/nodeSelector",
                value=dict(pod.spec.nodeSelector),
            )
        )

    return Patch(actions)
