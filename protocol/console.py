import queue
import sys
import threading

POLL_INTERVAL = 0.2


class Console:
    """Operator side of a session: lines typed in, chat and notices printed out.

    One background thread reads the input file; sessions take lines from its
    queue, so a session that has ended can stop waiting without eating a line
    meant for the next one.
    """

    def __init__(self, infile=None, outfile=None, prompt="> "):
        self.infile = infile or sys.stdin
        self.outfile = outfile or sys.stdout
        self.prompt = prompt
        self.lines = queue.Queue()
        self.returned = []
        self._pump = None
        self._lock = threading.Lock()

    def _start_pump(self):
        with self._lock:
            if self._pump is None:
                self._pump = threading.Thread(target=self._read_input, name="console-input", daemon=True)
                self._pump.start()

    def _read_input(self):
        for line in iter(self.infile.readline, ""):
            self.lines.put(line)
        self.lines.put(None)

    def read_line(self, cancelled=None):
        """Next line typed by the operator including its terminator.

        Returns None at end of input, or once ``cancelled`` (a threading.Event) is set.
        """
        self.outfile.write(self.prompt)
        self.outfile.flush()
        self._start_pump()
        while True:
            with self._lock:
                if self.returned:
                    return self.returned.pop()
            try:
                line = self.lines.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                if cancelled is not None and cancelled.is_set():
                    return None
                continue
            if line is None:
                self.lines.put(None)  # every later reader sees end of input too
            return line

    def unread(self, line):
        """Give back a line taken by a session that can no longer send it.

        The line is handed out again before anything still queued.
        """
        with self._lock:
            self.returned.append(line)

    def show_chat(self, text):
        # green, then re-print the prompt the incoming line overwrote
        self.outfile.write(f"\x1b[32m{text}\x1b[0m\n{self.prompt}")
        self.outfile.flush()

    def notify(self, text):
        self.outfile.write(f"{text}\n")
        self.outfile.flush()

    def error(self, text):
        self.outfile.write(f"[!] {text}\n")
        self.outfile.flush()
