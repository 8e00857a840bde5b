from typerace.services import metrics


def test_wpm_uses_five_chars_per_word():
    # 50 chars in 60s is 10 words per minute
    assert metrics.wpm(50, 60) == 10
    assert metrics.wpm(25, 30) == 10


def test_wpm_zero_for_missing_or_bad_elapsed():
    assert metrics.wpm(50, None) == 0
    assert metrics.wpm(50, 0) == 0
    assert metrics.wpm(50, -5) == 0
    assert metrics.wpm(50, float('nan')) == 0
    assert metrics.wpm(0, 10) == 0


def test_elapsed_wpm_unset_start():
    assert metrics.elapsed_wpm(50, None, 100.0) == 0
    assert metrics.elapsed_wpm(50, 40.0, 100.0) == 10


def test_accuracy_bounds():
    assert metrics.accuracy(0, 0) == 100.0
    assert metrics.accuracy(3, 4) == 75.0
    assert metrics.accuracy(0, 4) == 0.0


def test_progress_capped_and_empty_text():
    assert metrics.progress(3, 6) == 50.0
    assert metrics.progress(10, 6) == 100.0
    assert metrics.progress(3, 0) == 0.0


def test_typed_accuracy_is_positional():
    text = 'cat dog'
    assert metrics.typed_accuracy('', text) == 100.0
    assert metrics.typed_accuracy('cax', text) == 2 / 3 * 100
    # Fixing the mistake restores accuracy
    assert metrics.typed_accuracy('cat', text) == 100.0


def test_accept_input_forward_only():
    text = 'cat dog'
    assert metrics.accept_input('ca', text)
    assert metrics.accept_input('cat ', text)
    assert metrics.accept_input('cat do', text)
    # a space may not close a wrong word
    assert not metrics.accept_input('cax ', text)
    # a word may not run past its target
    assert not metrics.accept_input('catt', text)
    # nothing past the end of the passage
    assert not metrics.accept_input('cat dog ', text)
