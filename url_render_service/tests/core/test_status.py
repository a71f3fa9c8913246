from url_render_service.core.status import ProcessGate, ProcessStatus


def test_gate_starts_idle():
    gate = ProcessGate()
    assert gate.status is ProcessStatus.IDLE
    assert gate.get_status() is ProcessStatus.IDLE
    assert gate.is_idle


def test_try_enter_is_single_slot():
    gate = ProcessGate()
    assert gate.try_enter() is True
    assert gate.status is ProcessStatus.PROCESSING
    # A second caller is rejected and the state is unchanged.
    assert gate.try_enter() is False
    assert gate.status is ProcessStatus.PROCESSING


def test_leave_reopens_gate():
    gate = ProcessGate()
    gate.try_enter()
    gate.leave()
    assert gate.is_idle
    assert gate.try_enter() is True


def test_set_status_accepts_wire_values():
    gate = ProcessGate()
    gate.set_status("processing")
    assert gate.status is ProcessStatus.PROCESSING
    assert ProcessStatus.IDLE.value == "idle"
