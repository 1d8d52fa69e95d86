"""Shared builders for test data. All times are UTC."""

from datetime import datetime, timezone

from sleep_log.classification.schemas import Category, Observation, SleepSession

UTC = timezone.utc


def ms(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> int:
    """Epoch milliseconds for a UTC wall-clock time."""
    return int(datetime(year, month, day, hour, minute, tzinfo=UTC).timestamp() * 1000)


def observation(start: int, hours: float, target: int = 22) -> Observation:
    return Observation(
        start_time_millis=start,
        duration_seconds=int(hours * 3600),
        target_bedtime_hour=target,
    )


def session(start: int, hours: float, category: Category | None, target: int = 22) -> SleepSession:
    return SleepSession.create(
        start,
        start + int(hours * 3600 * 1000),
        target,
        category=category,
        heuristic_category=category,
    )


def write_onnx_classifier(path, weights, zipmap: bool = False):
    """Save a linear ``scores = x @ weights`` classifier as ONNX.

    With ``zipmap`` the scores are wrapped in a ZipMap probability output,
    the layout skl2onnx produces by default.
    """
    import numpy as np
    from onnx import TensorProto, helper, numpy_helper, save

    n_in, n_out = len(weights), len(weights[0])
    nodes = [helper.make_node("MatMul", ["float_input", "W"], ["scores"])]
    opsets = [helper.make_opsetid("", 13)]

    if zipmap:
        nodes.append(
            helper.make_node(
                "ZipMap",
                ["scores"],
                ["output_probability"],
                domain="ai.onnx.ml",
                classlabels_int64s=list(range(n_out)),
            )
        )
        opsets.append(helper.make_opsetid("ai.onnx.ml", 1))
        output = helper.make_value_info(
            "output_probability",
            helper.make_sequence_type_proto(
                helper.make_map_type_proto(
                    TensorProto.INT64, helper.make_tensor_type_proto(TensorProto.FLOAT, [])
                )
            ),
        )
    else:
        output = helper.make_tensor_value_info("scores", TensorProto.FLOAT, [None, n_out])

    graph = helper.make_graph(
        nodes,
        "classifier",
        [helper.make_tensor_value_info("float_input", TensorProto.FLOAT, [None, n_in])],
        [output],
        initializer=[numpy_helper.from_array(np.asarray(weights, dtype=np.float32), name="W")],
    )
    model = helper.make_model(graph, opset_imports=opsets)
    model.ir_version = 8
    save(model, str(path))
    return path
