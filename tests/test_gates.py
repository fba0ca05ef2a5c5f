from types import SimpleNamespace

from g3tornado.services.gates import active_gate, format_gate, gate_progress, is_gated


def _gate(name, completed=False, owner_name=None):
    return SimpleNamespace(name=name, completed=completed, owner_name=owner_name)


class TestActiveGate:
    def test_first_incomplete_wins(self):
        gates = [_gate("a", True), _gate("b"), _gate("c")]
        assert active_gate(gates) is gates[1]

    def test_empty_list_has_no_active_gate(self):
        assert active_gate([]) is None
        assert not is_gated([])

    def test_all_completed_has_no_active_gate(self):
        assert active_gate([_gate("a", True), _gate("b", True)]) is None

    def test_list_order_not_priority(self):
        gates = [_gate("late"), _gate("early")]
        assert active_gate(gates).name == "late"

    def test_completing_reveals_next(self):
        gates = [_gate("a"), _gate("b")]
        gates[0].completed = True
        assert active_gate(gates).name == "b"

    def test_dict_records(self):
        gates = [{"name": "a", "completed": True}, {"name": "b", "completed": False}]
        assert active_gate(gates)["name"] == "b"

    def test_malformed_collections_are_not_gated(self):
        assert active_gate(None) is None
        assert active_gate("not a list") is None
        assert active_gate({"completed": False}) is None
        assert not is_gated(None)

    def test_missing_completed_counts_as_incomplete(self):
        gate = SimpleNamespace(name="x")
        assert active_gate([gate]) is gate


class TestGateProgress:
    def test_current_and_next_are_one_based(self):
        gates = [_gate("a", True), _gate("b", owner_name="Alwin"), _gate("c", True), _gate("d")]
        progress = gate_progress(gates)
        assert progress.current_index == 2
        assert progress.current.name == "b"
        assert progress.next_index == 4
        assert progress.next.name == "d"
        assert progress.total == 4

    def test_no_incomplete_gates(self):
        progress = gate_progress([_gate("a", True)])
        assert progress.current is None
        assert progress.next is None
        assert progress.to_dict()["current"] is None

    def test_to_dict_summarises_gates(self):
        data = gate_progress([_gate("Legal", owner_name="Alwin")]).to_dict()
        assert data["current"] == {"name": "Legal", "owner_name": "Alwin"}
        assert data["total"] == 1


def test_format_gate():
    assert format_gate(3, 5, "Alwin") == "3/5 Alwin"
    assert format_gate(1, 2, None) == "1/2"
