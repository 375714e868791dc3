from timetable_engine.models.academic_unit import AcademicUnit, AcademicUnitType  # noqa: F401
from timetable_engine.models.academic_year import AcademicYear  # noqa: F401
from timetable_engine.models.assignment_history import (  # noqa: F401
    AssignmentCategory,
    AssignmentHistory,
    HistoryAction,
)
from timetable_engine.models.class_teacher import ClassTeacher  # noqa: F401
from timetable_engine.models.subject import Subject  # noqa: F401
from timetable_engine.models.teacher import Teacher, TeacherSubject  # noqa: F401
from timetable_engine.models.teacher_class_assignment import (  # noqa: F401
    AssignmentType,
    TeacherClassAssignment,
)
from timetable_engine.models.timetable import (  # noqa: F401
    LIVE_TIMETABLE_STATUSES,
    DayOfWeek,
    SlotType,
    Timetable,
    TimetableSlot,
    TimetableStatus,
    TimetableTemplate,
)
