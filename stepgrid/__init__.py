"""
stepgrid - an event-driven MIDI step sequencer for Python.

Every instrument channel owns a row of on/off steps. A tempo clock advances
a shared cursor one step at a time and every channel whose step is on fires
a MIDI note. All state lives in a single ``PatternStore`` that is edited and
driven only through named events on an event bus, so any front end - the
Python API, OSC, or your own code - talks to it the same way.

- **One pattern, one truth.** ``PatternStore`` is a process-wide singleton;
  every component shares it through the event bus.
- **Resizable grids.** Grow or shrink the number of steps per channel at
  any time. Growing keeps what you had; shrinking cuts the tail.
- **MIDI out.** Assign each channel a note; hits last one step.
- **OSC control.** Toggle steps, resize, clear and reset from any OSC
  controller, and receive the cursor position on every step.
- **Terminal display.** A live step grid with a playhead.

Minimal example:

    ```python
    import stepgrid

    seq = stepgrid.StepSequencer(bpm=124)
    seq.channel("kick", note=36, hits=[0, 4, 8, 12])
    seq.channel("snare", note=38, hits=[4, 12])
    seq.display(grid=True)
    seq.play()
    ```

Package-level exports: ``StepSequencer``, ``PatternStore``, ``EventEmitter``,
``get_pattern_store``.
"""

import stepgrid.event_emitter
import stepgrid.pattern_store
import stepgrid.step_sequencer


EventEmitter = stepgrid.event_emitter.EventEmitter
PatternStore = stepgrid.pattern_store.PatternStore
StepSequencer = stepgrid.step_sequencer.StepSequencer
get_pattern_store = stepgrid.pattern_store.get_pattern_store
