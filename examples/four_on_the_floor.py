import logging

import stepgrid

logging.basicConfig(level=logging.INFO)

KICK = 36
SNARE = 38
CLOSED_HAT = 42
OPEN_HAT = 46

sequencer = stepgrid.StepSequencer(bpm=124)

sequencer.channel("kick", note=KICK, hits=[0, 4, 8, 12])
sequencer.channel("snare", note=SNARE, hits=[4, 12])
sequencer.channel("hat", note=CLOSED_HAT, velocity=70, hits=range(0, 16, 2))
sequencer.channel("open hat", note=OPEN_HAT, velocity=80, hits=[14])

# Send "/step hat 3 1" to port 9000 to add a hat on step 4, "/steps 12" to
# cut the loop to three beats.
sequencer.osc()

if __name__ == "__main__":

	sequencer.display(grid=True)
	sequencer.play()
