import pytest

from pallet_interactor.interactor.errors import InvalidParamIndexError, InvalidTransitionError
from pallet_interactor.interactor.form import FormPhase, FormState, InputParam, InteractionForm
from pallet_interactor.interactor.metadata import Category, MetadataView, get_shape_descriptor
from pallet_interactor.interactor.schema import derive_parameters


@pytest.fixture
def form(sample_document):
    return InteractionForm(MetadataView(sample_document), category=Category.EXTRINSIC)


def test_initial_form_is_idle():
    form = InteractionForm()
    assert form.phase is FormPhase.IDLE
    assert form.state == FormState()
    assert form.namespaces == []


def test_selections_before_upstream_are_rejected():
    form = InteractionForm()
    with pytest.raises(InvalidTransitionError):
        form.select_namespace("balances")
    form.select_category(Category.QUERY)
    with pytest.raises(InvalidTransitionError):
        form.select_callable("account")


def test_select_category_lists_namespaces(form):
    assert form.phase is FormPhase.CATEGORY_SELECTED
    assert [ref.name for ref in form.namespaces] == ["balances", "system", "timestamp"]


def test_select_callable_seeds_empty_inputs(form, sample_document):
    form.select_namespace("balances")
    state = form.select_callable("transfer")
    descriptor = get_shape_descriptor(MetadataView(sample_document), Category.EXTRINSIC, "balances", "transfer")
    assert len(state.input_params) == len(derive_parameters(Category.EXTRINSIC, descriptor)) == 2
    assert state.input_params == (InputParam("AccountId", ""), InputParam("Option<Balance>", ""))
    assert [(p.name, p.optional) for p in form.parameters] == [("dest", False), ("value", True)]


def test_new_namespace_clears_callable_and_inputs(form):
    form.select_namespace("balances")
    form.select_callable("transfer")
    form.set_param_value(0, "5Grw")
    state = form.select_namespace("timestamp")
    assert state.namespace == "timestamp"
    assert state.callable == ""
    assert state.input_params == ()
    assert form.parameters == ()
    assert [ref.name for ref in form.callables] == ["set"]


def test_reselecting_same_namespace_still_resets(form):
    form.select_namespace("balances")
    form.select_callable("transfer")
    state = form.select_namespace("balances")
    assert state.callable == ""
    assert state.input_params == ()


def test_new_callable_resets_inputs(form):
    form.select_namespace("balances")
    form.select_callable("transfer")
    form.set_param_value(0, "5Grw")
    state = form.select_callable("setBalance")
    assert [param.value for param in state.input_params] == ["", "", ""]
    # Returning to the previous callable does not restore its inputs.
    state = form.select_callable("transfer")
    assert [param.value for param in state.input_params] == ["", ""]


def test_switching_category_clears_everything(form):
    form.select_namespace("balances")
    form.select_callable("transfer")
    form.set_param_value(1, "100")
    state = form.select_category(Category.RPC)
    assert state == FormState(category=Category.RPC)
    assert form.parameters == ()
    assert [ref.name for ref in form.namespaces] == ["author", "chain", "system"]


def test_set_param_value_out_of_range_leaves_state_untouched(form):
    form.select_namespace("balances")
    form.select_callable("transfer")
    form.set_param_value(0, "5Grw")
    before = form.state
    with pytest.raises(InvalidParamIndexError):
        form.set_param_value(5, "100")
    with pytest.raises(InvalidParamIndexError):
        form.set_param_value(-1, "100")
    assert form.state is before
    assert len(form.state.input_params) == 2


def test_invalid_index_is_also_an_index_error(form):
    with pytest.raises(IndexError):
        form.set_param_value(0, "x")


def test_set_param_value_keeps_declared_type(form):
    form.select_namespace("balances")
    form.select_callable("transfer")
    state = form.set_param_value(1, "100")
    assert state.input_params[1] == InputParam("Option<Balance>", "100")
    assert state.input_params[0] == InputParam("AccountId", "")


def test_phase_tracks_required_parameters(form):
    form.select_namespace("balances")
    assert form.phase is FormPhase.NAMESPACE_SELECTED
    form.select_callable("transfer")
    assert form.phase is FormPhase.CALLABLE_SELECTED
    assert form.missing_required() == ["dest"]
    form.set_param_value(0, "5Grw")
    assert form.missing_required() == []
    assert form.phase is FormPhase.PARAMETERS_BOUND


def test_zero_parameter_callable_is_bound_immediately(form):
    form.select_namespace("system")
    form.select_callable("remark")
    assert form.state.input_params == ()
    assert form.phase is FormPhase.PARAMETERS_BOUND


def test_listeners_only_see_committed_states(form):
    seen = []
    unsubscribe = form.subscribe(seen.append)
    form.select_namespace("balances")
    form.select_callable("transfer")
    for state in seen:
        assert len(state.input_params) in (0, len(form.parameters))
    assert seen[-1].callable == "transfer"
    assert len(seen[-1].input_params) == 2
    unsubscribe()
    form.select_namespace("system")
    assert len(seen) == 2


def test_unknown_callable_derives_no_parameters(form):
    form.select_namespace("balances")
    state = form.select_callable("doesNotExist")
    assert state.input_params == ()


def test_absent_metadata_keeps_form_usable():
    form = InteractionForm(None, category="QUERY")
    assert form.namespaces == []
    form.select_namespace("balances")
    assert form.callables == []
    state = form.select_callable("account")
    assert state.input_params == ()


def test_set_metadata_keeps_inputs_when_shape_unchanged(form, sample_document):
    form.select_namespace("balances")
    form.select_callable("transfer")
    form.set_param_value(0, "5Grw")
    state = form.set_metadata(MetadataView(sample_document))
    assert state.input_params[0].value == "5Grw"


def test_set_metadata_reseeds_when_shape_changes(form, sample_document):
    form.select_namespace("balances")
    form.select_callable("transfer")
    form.set_param_value(0, "5Grw")
    sample_document["tx"]["balances"]["transfer"]["args"].append({"name": "memo", "type": "Bytes"})
    state = form.set_metadata(MetadataView(sample_document))
    assert state.callable == "transfer"
    assert [param.value for param in state.input_params] == ["", "", ""]
    assert len(state.input_params) == len(form.parameters)


def test_set_metadata_to_none_empties_parameters(form):
    form.select_namespace("balances")
    form.select_callable("transfer")
    state = form.set_metadata(None)
    assert form.namespaces == []
    assert state.input_params == ()


def test_reset_returns_to_category_start(form):
    form.select_namespace("balances")
    form.select_callable("transfer")
    state = form.reset()
    assert state == FormState(category=Category.EXTRINSIC)


def test_state_to_dict(form):
    form.select_namespace("balances")
    form.select_callable("transfer")
    form.set_param_value(1, "7")
    assert form.state.to_dict() == {
        "category": "EXTRINSIC",
        "namespace": "balances",
        "callable": "transfer",
        "inputParams": [
            {"type": "AccountId", "value": ""},
            {"type": "Option<Balance>", "value": "7"},
        ],
    }
