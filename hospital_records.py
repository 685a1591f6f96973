from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Callable, Dict, List, Optional, Tuple
import heapq
import itertools
import logging
import re
import threading

logger = logging.getLogger(__name__)

# ---------- Configuration ----------
EMERGENCY_CAPACITY = 100
OPD_CAPACITY = 50
HISTORY_CAPACITY = 1000
OPD_TOKEN_START = 1001
HISTORY_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

SAMPLE_DEPARTMENTS = ["Cardiology", "Neurology", "Orthopedics", "Pediatrics", "General"]

NIL = -1  # empty child slot in the department arena

_PHONE_RE = re.compile(r"[0-9]{10}")


class CorruptedStateError(RuntimeError):
    """Raised when internal bookkeeping disagrees with itself (a bug, not a usage error)."""


def _check_capacity(capacity: int) -> int:
    if capacity < 1:
        raise ValueError("capacity must be positive, got %r" % (capacity,))
    return capacity


# ---------- ADTs ----------
class Priority(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3


@dataclass
class PatientRecord:
    id: int
    name: str
    age: int
    gender: str
    disease: str
    contact: str

    def __str__(self):
        return (f"ID: {self.id} | Name: {self.name} | Age: {self.age} | "
                f"Gender: {self.gender} | Disease: {self.disease} | Contact: {self.contact}")


@dataclass
class EmergencyCase:
    id: int
    name: str
    priority: int  # 3 = HIGH, 2 = MEDIUM, 1 = LOW
    condition: str
    arrival: int = 0

    def sort_key(self) -> Tuple[int, int]:
        return (-self.priority, self.arrival)

    def __str__(self):
        return (f"ID: {self.id} | Name: {self.name} | Priority: {self.priority} | "
                f"Condition: {self.condition} | Arrival: {self.arrival}")


@dataclass
class OPDVisit:
    id: int
    name: str
    token: int
    department: str

    def __str__(self):
        return f"Token: {self.token} | ID: {self.id} | Name: {self.name} | Department: {self.department}"


# BST node stored in the department arena; children are arena indices
@dataclass
class DepartmentNode:
    name: str
    left: int = NIL
    right: int = NIL


# ---------- Data Structures ----------
class PatientRegistry:
    """Patients in registration order, with an id -> position index for O(1) lookups."""

    def __init__(self):
        self.records: List[PatientRecord] = []
        self.index: Dict[int, int] = {}

    def add(self, pid: int, name: str, age: int, gender: str, disease: str, contact: str) -> bool:
        if pid in self.index:
            logger.debug("patient id %s already registered", pid)
            return False
        self.index[pid] = len(self.records)
        self.records.append(PatientRecord(pid, name, age, gender, disease, contact))
        return True

    def search(self, pid: int) -> Optional[PatientRecord]:
        pos = self.index.get(pid)
        if pos is None:
            return None
        return self.records[pos]

    def update(self, pid: int, name: str, age: int, gender: str, disease: str, contact: str) -> bool:
        record = self.search(pid)
        if record is None:
            return False
        record.name = name
        record.age = age
        record.gender = gender
        record.disease = disease
        record.contact = contact
        return True

    def delete(self, pid: int) -> bool:
        pos = self.index.pop(pid, None)
        if pos is None:
            return False
        del self.records[pos]
        # everything after the removed slot shifted left by one
        for i in range(pos, len(self.records)):
            self.index[self.records[i].id] = i
        return True

    def list_all(self) -> List[PatientRecord]:
        return list(self.records)

    def count(self) -> int:
        return len(self.records)

    def exists(self, pid: int) -> bool:
        return pid in self.index

    def __len__(self):
        return len(self.records)


class EmergencyQueue:
    """Bounded binary heap: highest priority first, earliest arrival among equals."""
    # add/treat = O(log n)
    def __init__(self, capacity: int = EMERGENCY_CAPACITY):
        self.cap = _check_capacity(capacity)
        self.heap: List[Tuple[Tuple[int, int], EmergencyCase]] = []
        self._arrivals = itertools.count(1)  # tie-breaker, never wall-clock

    def add(self, pid: int, name: str, priority: int, condition: str) -> bool:
        if len(self.heap) >= self.cap:
            logger.debug("emergency queue full (capacity=%d), rejected patient %s", self.cap, pid)
            return False
        case = EmergencyCase(pid, name, priority, condition, arrival=next(self._arrivals))
        # arrival is unique, so the case itself is never compared
        heapq.heappush(self.heap, (case.sort_key(), case))
        return True

    def treat_next(self) -> Optional[EmergencyCase]:
        if not self.heap:
            return None
        _, case = heapq.heappop(self.heap)
        return case

    def peek_next(self) -> Optional[EmergencyCase]:
        if not self.heap:
            return None
        return self.heap[0][1]

    def list_all(self) -> List[EmergencyCase]:
        return [case for _, case in sorted(self.heap)]

    def count(self) -> int:
        return len(self.heap)

    def is_empty(self) -> bool:
        return not self.heap

    def __len__(self):
        return len(self.heap)


class OPDQueue:
    """Fixed-size circular queue of OPD visits; tokens are issued independently of slots."""
    # register/treat are O(1)
    def __init__(self, capacity: int = OPD_CAPACITY, token_start: int = OPD_TOKEN_START):
        self.cap = _check_capacity(capacity)
        self.data: List[Optional[OPDVisit]] = [None] * self.cap
        self.head = 0
        self.tail = 0
        self.size = 0
        self.token_counter = itertools.count(token_start)

    def register(self, pid: int, name: str, department: str) -> bool:
        if self.size == self.cap:
            logger.debug("OPD queue full (capacity=%d), rejected patient %s", self.cap, pid)
            return False
        # a token is only drawn once the slot is guaranteed
        visit = OPDVisit(pid, name, next(self.token_counter), department)
        self.data[self.tail] = visit
        self.tail = (self.tail + 1) % self.cap
        self.size += 1
        return True

    def treat_next(self) -> Optional[OPDVisit]:
        if self.size == 0:
            return None
        visit = self.data[self.head]
        self.data[self.head] = None
        self.head = (self.head + 1) % self.cap
        self.size -= 1
        return visit

    def peek_next(self) -> Optional[OPDVisit]:
        if self.size == 0:
            return None
        return self.data[self.head]

    def list_all(self) -> List[OPDVisit]:
        return [self.data[(self.head + i) % self.cap] for i in range(self.size)]

    def count(self) -> int:
        return self.size

    def is_empty(self) -> bool:
        return self.size == 0

    def __len__(self):
        return self.size


class MedicalHistoryLog:
    """Bounded stack of timestamped notes. push/pop O(1)."""
    def __init__(self, capacity: int = HISTORY_CAPACITY, clock: Callable[[], datetime] = datetime.now):
        self.cap = _check_capacity(capacity)
        self.stack: List[str] = []
        self.clock = clock

    def add_record(self, text: str) -> bool:
        if len(self.stack) >= self.cap:
            logger.debug("medical history full (capacity=%d)", self.cap)
            return False
        stamp = self.clock().strftime(HISTORY_TIMESTAMP_FORMAT)
        self.stack.append(f"{stamp} - {text}")
        return True

    def remove_latest(self) -> Optional[str]:
        if not self.stack:
            return None
        return self.stack.pop()

    def list_all(self) -> List[str]:
        return self.stack[::-1]

    def count(self) -> int:
        return len(self.stack)

    def is_empty(self) -> bool:
        return len(self.stack) == 0

    def clear(self):
        self.stack.clear()

    def __len__(self):
        return len(self.stack)


class DepartmentDirectory:
    """
    Binary search tree of department names ordered case-insensitively.

    Nodes live in an arena (``self.nodes``) and link to each other by index;
    freed slots are recycled through ``self.free``. Occupancy counters are
    kept only in ``self.stats`` (lower-cased name -> count), the tree is used
    for ordering and lookup.
    """

    def __init__(self):
        self.nodes: List[Optional[DepartmentNode]] = []
        self.free: List[int] = []
        self.root = NIL
        self.stats: Dict[str, int] = {}

    @staticmethod
    def _key(name: str) -> str:
        return name.lower()

    def _compare(self, name: str, idx: int) -> int:
        a, b = self._key(name), self._key(self.nodes[idx].name)
        return (a > b) - (a < b)

    def _alloc(self, name: str) -> int:
        node = DepartmentNode(name)
        if self.free:
            idx = self.free.pop()
            self.nodes[idx] = node
        else:
            idx = len(self.nodes)
            self.nodes.append(node)
        return idx

    def _release(self, idx: int):
        self.nodes[idx] = None
        self.free.append(idx)

    # ---- add ----
    def add(self, name: str) -> bool:
        key = self._key(name)
        if key in self.stats:
            return False
        self.root = self._insert(self.root, name)
        self.stats[key] = 0
        logger.info("department %r added", name)
        return True

    def _insert(self, idx: int, name: str) -> int:
        if idx == NIL:
            return self._alloc(name)
        node = self.nodes[idx]
        cmp = self._compare(name, idx)
        if cmp < 0:
            node.left = self._insert(node.left, name)
        elif cmp > 0:
            node.right = self._insert(node.right, name)
        else:
            raise CorruptedStateError(f"department {name!r} is in the tree but has no counter")
        return idx

    # ---- remove ----
    def remove(self, name: str) -> bool:
        key = self._key(name)
        if key not in self.stats:
            return False
        self.root = self._delete(self.root, name)
        del self.stats[key]
        logger.info("department %r removed", name)
        return True

    def _delete(self, idx: int, name: str) -> int:
        if idx == NIL:
            raise CorruptedStateError(f"department {name!r} has a counter but no tree node")
        node = self.nodes[idx]
        cmp = self._compare(name, idx)
        if cmp < 0:
            node.left = self._delete(node.left, name)
            return idx
        if cmp > 0:
            node.right = self._delete(node.right, name)
            return idx
        if node.left == NIL or node.right == NIL:
            child = node.right if node.left == NIL else node.left
            self._release(idx)
            return child
        # two children: promote the in-order successor, then drop it from the right subtree
        successor = self.nodes[self._min(node.right)]
        node.name = successor.name
        node.right = self._delete(node.right, successor.name)
        return idx

    def _min(self, idx: int) -> int:
        while self.nodes[idx].left != NIL:
            idx = self.nodes[idx].left
        return idx

    # ---- search ----
    def exists(self, name: str) -> bool:
        idx = self.root
        while idx != NIL:
            cmp = self._compare(name, idx)
            if cmp == 0:
                return True
            idx = self.nodes[idx].left if cmp < 0 else self.nodes[idx].right
        return False

    def rename(self, old_name: str, new_name: str) -> bool:
        old_key = self._key(old_name)
        if old_key not in self.stats or self._key(new_name) in self.stats:
            return False
        count = self.stats[old_key]
        self.remove(old_name)
        self.add(new_name)
        self.stats[self._key(new_name)] = count
        return True

    # ---- occupancy counters ----
    def increment_count(self, name: str) -> bool:
        key = self._key(name)
        if key not in self.stats:
            return False
        self.stats[key] += 1
        return True

    def decrement_count(self, name: str) -> bool:
        key = self._key(name)
        if key not in self.stats:
            return False
        self.stats[key] = max(0, self.stats[key] - 1)
        return True

    def count_of(self, name: str) -> Optional[int]:
        return self.stats.get(self._key(name))

    # ---- listing ----
    def list_all(self) -> List[str]:
        names: List[str] = []
        self._in_order(self.root, names)
        return names

    def _in_order(self, idx: int, out: List[str]):
        if idx == NIL:
            return
        node = self.nodes[idx]
        self._in_order(node.left, out)
        out.append(node.name)
        self._in_order(node.right, out)

    def list_with_stats(self) -> List[str]:
        return [f"{name} ({self.stats.get(self._key(name), 0)} patients)" for name in self.list_all()]

    def count(self) -> int:
        return len(self.stats)

    def __len__(self):
        return len(self.stats)


# ---------- Validators ----------
# Callers run these before mutating; the collections store whatever they are given.
def is_valid_phone(phone: Optional[str]) -> bool:
    return phone is not None and _PHONE_RE.fullmatch(phone) is not None


def is_valid_age(age: int) -> bool:
    return 0 < age <= 120


def is_valid_priority(priority: int) -> bool:
    return 1 <= priority <= 3


# ---------- Main System ----------
class HospitalSystem:
    """
    Owns the five collections and keeps them consistent.

    All public methods run under a single re-entrant lock, so operations
    that touch two collections (OPD registration and treatment) are atomic
    with respect to other callers.
    """

    def __init__(self, emergency_capacity: int = EMERGENCY_CAPACITY, opd_capacity: int = OPD_CAPACITY,
                 history_capacity: int = HISTORY_CAPACITY, token_start: int = OPD_TOKEN_START,
                 clock: Callable[[], datetime] = datetime.now, sample_data: bool = False):
        self.patients = PatientRegistry()
        self.emergency = EmergencyQueue(capacity=emergency_capacity)
        self.opd = OPDQueue(capacity=opd_capacity, token_start=token_start)
        self.history = MedicalHistoryLog(capacity=history_capacity, clock=clock)
        self.departments = DepartmentDirectory()
        self._lock = threading.RLock()
        if sample_data:
            self.load_sample_data()

    def load_sample_data(self):
        with self._lock:
            for dept in SAMPLE_DEPARTMENTS:
                self.departments.add(dept)
            self.patients.add(1001, "John Doe", 45, "Male", "Hypertension", "1234567890")
            self.patients.add(1002, "Jane Smith", 32, "Female", "Migraine", "0987654321")
            self.patients.add(1003, "Robert Brown", 67, "Male", "Arthritis", "1122334455")
            self.history.add_record("Patient 1001: Initial consultation for hypertension")
            self.history.add_record("Patient 1002: Follow-up for migraine treatment")
            self.history.add_record("Patient 1003: X-ray results reviewed for arthritis")

    # Patient methods
    def add_patient(self, pid: int, name: str, age: int, gender: str, disease: str, contact: str) -> bool:
        with self._lock:
            ok = self.patients.add(pid, name, age, gender, disease, contact)
            if ok:
                logger.info("patient %s registered", pid)
            return ok

    def search_patient(self, pid: int) -> Optional[PatientRecord]:
        with self._lock:
            return self.patients.search(pid)

    def update_patient(self, pid: int, name: str, age: int, gender: str, disease: str, contact: str) -> bool:
        with self._lock:
            return self.patients.update(pid, name, age, gender, disease, contact)

    def delete_patient(self, pid: int) -> bool:
        with self._lock:
            ok = self.patients.delete(pid)
            if ok:
                logger.info("patient %s deleted", pid)
            return ok

    def get_all_patients(self) -> List[PatientRecord]:
        with self._lock:
            return self.patients.list_all()

    def patient_exists(self, pid: int) -> bool:
        with self._lock:
            return self.patients.exists(pid)

    # Emergency methods
    def add_emergency_case(self, pid: int, name: str, priority: int, condition: str) -> bool:
        with self._lock:
            return self.emergency.add(pid, name, priority, condition)

    def treat_next_emergency(self) -> Optional[EmergencyCase]:
        with self._lock:
            case = self.emergency.treat_next()
            if case:
                logger.info("emergency patient %s treated (priority %d)", case.id, case.priority)
            return case

    def peek_next_emergency(self) -> Optional[EmergencyCase]:
        with self._lock:
            return self.emergency.peek_next()

    def get_all_emergency_cases(self) -> List[EmergencyCase]:
        with self._lock:
            return self.emergency.list_all()

    # OPD methods: registration and treatment both touch the department counters
    def register_opd(self, pid: int, name: str, department: str) -> bool:
        with self._lock:
            if not self.departments.exists(department):
                logger.debug("OPD registration for patient %s rejected: no department %r", pid, department)
                return False
            if not self.opd.register(pid, name, department):
                return False
            self.departments.increment_count(department)
            logger.info("patient %s queued for OPD in %s", pid, department)
            return True

    def treat_next_opd(self) -> Optional[OPDVisit]:
        with self._lock:
            visit = self.opd.treat_next()
            if visit:
                # counters track cumulative throughput, so treatment counts too
                self.departments.increment_count(visit.department)
                logger.info("OPD token %d treated in %s", visit.token, visit.department)
            return visit

    def peek_next_opd(self) -> Optional[OPDVisit]:
        with self._lock:
            return self.opd.peek_next()

    def get_all_opd_visits(self) -> List[OPDVisit]:
        with self._lock:
            return self.opd.list_all()

    # Medical history methods
    def add_medical_record(self, text: str) -> bool:
        with self._lock:
            return self.history.add_record(text)

    def remove_latest_record(self) -> Optional[str]:
        with self._lock:
            return self.history.remove_latest()

    def get_all_medical_records(self) -> List[str]:
        with self._lock:
            return self.history.list_all()

    def clear_medical_history(self):
        with self._lock:
            self.history.clear()
            logger.info("medical history cleared")

    # Department methods
    def add_department(self, name: str) -> bool:
        with self._lock:
            return self.departments.add(name)

    def remove_department(self, name: str) -> bool:
        with self._lock:
            return self.departments.remove(name)

    def rename_department(self, old_name: str, new_name: str) -> bool:
        with self._lock:
            return self.departments.rename(old_name, new_name)

    def department_exists(self, name: str) -> bool:
        with self._lock:
            return self.departments.exists(name)

    def get_all_departments(self) -> List[str]:
        with self._lock:
            return self.departments.list_all()

    def get_departments_with_stats(self) -> List[str]:
        with self._lock:
            return self.departments.list_with_stats()

    def increment_department_count(self, name: str) -> bool:
        with self._lock:
            return self.departments.increment_count(name)

    def decrement_department_count(self, name: str) -> bool:
        with self._lock:
            return self.departments.decrement_count(name)

    def department_count(self, name: str) -> Optional[int]:
        with self._lock:
            return self.departments.count_of(name)

    # Counts
    def get_total_patients(self) -> int:
        with self._lock:
            return self.patients.count()

    def get_emergency_count(self) -> int:
        with self._lock:
            return self.emergency.count()

    def get_opd_count(self) -> int:
        with self._lock:
            return self.opd.count()

    def get_department_count(self) -> int:
        with self._lock:
            return self.departments.count()

    def get_medical_record_count(self) -> int:
        with self._lock:
            return self.history.count()

    # Reports
    def system_report(self) -> Dict[str, int]:
        with self._lock:
            return {
                "Total Patients": self.patients.count(),
                "Emergency Patients": self.emergency.count(),
                "OPD Patients": self.opd.count(),
                "Departments": self.departments.count(),
                "Medical Records": self.history.count(),
            }

    def export_patient_data(self) -> str:
        with self._lock:
            lines = ["===== PATIENT DATA EXPORT =====",
                     f"Total Patients: {self.patients.count()}",
                     ""]
            lines.extend(str(p) for p in self.patients.list_all())
            return "\n".join(lines) + "\n"

    def export_system_report(self, generated_at: Optional[datetime] = None) -> str:
        if generated_at is None:
            generated_at = datetime.now().astimezone()
        stamp_format = "%a %b %d %H:%M:%S %Z %Y" if generated_at.tzinfo else "%a %b %d %H:%M:%S %Y"
        with self._lock:
            lines = ["===== HOSPITAL SYSTEM REPORT =====",
                     "Generated: " + generated_at.strftime(stamp_format),
                     ""]
            lines.extend(f"{key:<20}: {value}" for key, value in self.system_report().items())
            lines.append("")
            lines.append("===== DEPARTMENT STATISTICS =====")
            lines.extend(self.departments.list_with_stats())
            return "\n".join(lines) + "\n"


# ---------- Example CLI / Sample usage ----------
def sample_run():
    hs = HospitalSystem(sample_data=True)

    hs.add_emergency_case(2001, "Asha", Priority.MEDIUM, "Fracture")
    hs.add_emergency_case(2002, "Ravi", Priority.HIGH, "Chest pain")
    hs.add_emergency_case(2003, "Meera", Priority.HIGH, "Stroke symptoms")
    print("Next emergency:", hs.peek_next_emergency())
    print("Treated:", hs.treat_next_emergency())

    hs.register_opd(1001, "John Doe", "Cardiology")
    hs.register_opd(1002, "Jane Smith", "Neurology")
    print("OPD registration for unknown department:", hs.register_opd(1003, "Robert Brown", "Dermatology"))
    print("OPD treated:", hs.treat_next_opd())

    hs.rename_department("General", "General Medicine")
    print(hs.export_patient_data())
    print(hs.export_system_report())


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    sample_run()
