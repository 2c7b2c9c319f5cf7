
class Phase:
    IDLE = "IDLE"                                   # no step active, or run complete
    WAITING_FOR_THRESHOLD = "WAITING_FOR_THRESHOLD" # Wait-mode step, target not reached yet
    COUNTING_DOWN = "COUNTING_DOWN"                 # step timer running
